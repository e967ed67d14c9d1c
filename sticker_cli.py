#!/usr/bin/env python3

import argparse
import os
import signal
from tqdm import tqdm
from stickerlib.core import config
from stickerlib.core import utils
from stickerlib.core.models import MediaBlob
from stickerlib.sticker import StickerMaker

#============================================

def parse_args():
	"""
	Parse command-line arguments.
	"""
	parser = argparse.ArgumentParser(description="Convert images, GIFs, and videos to WebP stickers")
	parser.add_argument('-i', '--input', dest='input_files', nargs='+',
		help='media files to convert')
	parser.add_argument('-o', '--output', dest='output',
		help='output file, or output directory when converting several inputs')
	parser.add_argument('-m', '--mimetype', dest='mimetype',
		help='declared MIME type (guessed from the file name when omitted)')
	parser.add_argument('-t', '--message-type', dest='message_type',
		help='messaging client type hint, e.g. gif')
	parser.add_argument('-c', '--config', dest='config_file',
		help='stickerlib yaml config file')
	parser.add_argument('-w', '--write-default-config', dest='write_default_config',
		help='write the default config to this path and exit')
	parser.add_argument('-n', '--name', dest='name',
		help='sticker pack name')
	parser.add_argument('-a', '--author', dest='author',
		help='sticker author')
	parser.add_argument('-q', '--quiet', dest='quiet', action='store_true',
		help='do not echo ffmpeg commands')
	parser.set_defaults(quiet=False)
	args = parser.parse_args()
	return args

#============================================

def output_path_for(input_file: str, output: str, multiple: bool) -> str:
	stem = os.path.splitext(os.path.basename(input_file))[0]
	if output is None:
		return os.path.join(os.path.dirname(input_file), f"{stem}.sticker.webp")
	if multiple or os.path.isdir(output):
		os.makedirs(output, exist_ok=True)
		return os.path.join(output, f"{stem}.sticker.webp")
	return output

#============================================

def convert_file(maker: StickerMaker, input_file: str, output_file: str,
	args) -> str:
	blob = MediaBlob.from_file(input_file, mimetype=args.mimetype)
	with maker.make_sticker(blob, name=args.name, author=args.author,
		message_type=args.message_type) as sticker:
		if not sticker.transcoded:
			# keep the source extension for untouched media
			extension = os.path.splitext(input_file)[1]
			output_file = os.path.splitext(output_file)[0] + extension
		with open(output_file, 'wb') as handle:
			handle.write(sticker.blob.data)
		status = "transcoded" if sticker.transcoded else "passed through"
	return f"{input_file} -> {output_file} ({status})"

#============================================

def _handle_sigterm(signum, frame) -> None:
	# unwind like Ctrl-C: kills the running child, releases the workspace
	raise SystemExit(128 + signum)

#============================================

def main():
	signal.signal(signal.SIGTERM, _handle_sigterm)
	args = parse_args()
	if args.write_default_config:
		config.write_config_file(args.write_default_config, config.default_config())
		print(f"Wrote default config: {args.write_default_config}")
		return
	if not args.input_files:
		raise RuntimeError("missing required -i/--input")
	utils.set_quiet_mode(args.quiet)
	settings = config.load_settings(args.config_file)
	maker = StickerMaker(settings)
	multiple = len(args.input_files) > 1
	iter_files = args.input_files
	if multiple and not args.quiet:
		iter_files = tqdm(args.input_files)
	lines = []
	for input_file in iter_files:
		if not os.path.isfile(input_file):
			raise RuntimeError(f"file not found: {input_file}")
		output_file = output_path_for(input_file, args.output, multiple)
		lines.append(convert_file(maker, input_file, output_file, args))
	for line in lines:
		print(line)


if __name__ == '__main__':
	main()
