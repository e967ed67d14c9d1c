#!/usr/bin/env python3

"""
ffmpeg/libwebp encoding of frame sequences and single inputs into stickers.
"""

# Standard Library
import os
import shutil

# PIP3 modules
import PIL.Image

# local repo modules
from stickerlib.core import utils
from stickerlib.core.errors import CommandError
from stickerlib.core.errors import EncodingError
from stickerlib.core.models import FrameSchedule
from stickerlib.core.models import MediaBlob
from stickerlib.core.workspace import Workspace
from stickerlib.media import ffmpeg_extract

#============================================

ENCODE_TIMEOUT = 30.0
STICKER_QUALITY = 100
OUTPUT_NAME = "sticker.webp"
OUTPUT_MIMETYPE = "image/webp"
SEQUENCE_DIR = "sequence"

#============================================

def describe_webp(filepath: str) -> dict:
	"""
	Open an encoded sticker with Pillow and read its frame layout.

	Args:
		filepath: WebP file path.

	Returns:
		dict: width, height, and total duration_ms.
	"""
	try:
		with PIL.Image.open(filepath) as image:
			if image.format != 'WEBP':
				raise EncodingError(f"encoder output is {image.format}, not WEBP")
			frame_count = getattr(image, 'n_frames', 1)
			total_ms = 0
			for index in range(frame_count):
				image.seek(index)
				total_ms += int(image.info.get('duration', 0) or 0)
			return {
				'width': image.size[0],
				'height': image.size[1],
				'duration_ms': total_ms,
			}
	except (OSError, ValueError, EOFError) as exc:
		raise EncodingError(f"encoder output is not a readable WebP: {exc}") from exc

#============================================

class StickerEncoder():
	def __init__(self, ffmpeg: str = 'ffmpeg', timeout: float = ENCODE_TIMEOUT,
		quality: int = STICKER_QUALITY):
		self.ffmpeg = ffmpeg
		self.timeout = timeout
		self.quality = quality

	#============================
	def encode(self, frames_or_video, schedule: FrameSchedule,
		workspace: Workspace, cancel_event=None) -> MediaBlob:
		if isinstance(frames_or_video, (list, tuple)):
			return self.encode_frames(frames_or_video, schedule, workspace,
				cancel_event=cancel_event)
		return self.encode_direct(frames_or_video, schedule, workspace,
			cancel_event=cancel_event)

	#============================
	def encode_frames(self, frame_paths: list, schedule: FrameSchedule,
		workspace: Workspace, cancel_event=None) -> MediaBlob:
		if len(frame_paths) == 0:
			raise EncodingError("no frames to encode")
		(pattern, start_number) = self._frame_sequence(frame_paths, workspace)
		rate = utils.format_rate(schedule.fps)
		cmd = [
			self.ffmpeg, "-y", "-hide_banner", "-loglevel", "error",
			"-framerate", rate,
			"-start_number", str(start_number),
			"-i", pattern,
			"-frames:v", str(len(frame_paths)),
			# restamp every frame at exactly 1/fps
			"-vf", "setpts=N/FRAME_RATE/TB",
		]
		cmd += self._webp_options(loop=True)
		output_path = workspace.add_file(OUTPUT_NAME)
		cmd.append(output_path)
		self._run(cmd, cancel_event)
		return self._read_output(output_path, schedule)

	#============================
	def encode_direct(self, input_path: str, schedule: FrameSchedule,
		workspace: Workspace, cancel_event=None) -> MediaBlob:
		canvas = ffmpeg_extract.canvas_filter(schedule.width, schedule.height)
		cmd = [
			self.ffmpeg, "-y", "-hide_banner", "-loglevel", "error",
			"-i", input_path,
		]
		if schedule.is_static:
			cmd += ["-vf", canvas, "-frames:v", "1"]
			cmd += self._webp_options(loop=False)
		else:
			vf = f"fps={utils.format_rate(schedule.fps)},{canvas}"
			cmd += ["-vf", vf, "-frames:v", str(schedule.frame_count)]
			cmd += self._webp_options(loop=True)
		output_path = workspace.add_file(OUTPUT_NAME)
		cmd.append(output_path)
		self._run(cmd, cancel_event)
		return self._read_output(output_path, schedule)

	#============================
	def _webp_options(self, loop: bool) -> list:
		options = [
			"-an", "-sn",
			"-c:v", "libwebp",
			"-lossless", "0",
			"-q:v", str(self.quality),
			"-preset", "default",
		]
		if loop:
			options += ["-loop", "0"]
		options += ["-f", "webp"]
		return options

	#============================
	def _frame_sequence(self, frame_paths: list, workspace: Workspace) -> tuple:
		"""
		Return an ffmpeg image2 pattern and start number for the frames.

		Contiguous extractor output is used in place; anything else is
		linked into a fresh numbered sequence in list order.
		"""
		frame_dir = os.path.dirname(frame_paths[0])
		indexes = []
		for filepath in frame_paths:
			if os.path.dirname(filepath) != frame_dir:
				indexes = None
				break
			indexes.append(ffmpeg_extract.frame_index(os.path.basename(filepath)))
		if indexes is not None and None not in indexes:
			expected = list(range(indexes[0], indexes[0] + len(indexes)))
			if indexes == expected:
				pattern = os.path.join(frame_dir, ffmpeg_extract.FRAME_PATTERN)
				return (pattern, indexes[0])
		sequence_dir = workspace.add_dir(SEQUENCE_DIR)
		for number, filepath in enumerate(frame_paths, start=1):
			name = ffmpeg_extract.FRAME_PATTERN % number
			target = workspace.add_file(os.path.join(SEQUENCE_DIR, name))
			try:
				os.link(filepath, target)
			except OSError:
				shutil.copyfile(filepath, target)
		pattern = os.path.join(sequence_dir, ffmpeg_extract.FRAME_PATTERN)
		return (pattern, 1)

	#============================
	def _run(self, cmd: list, cancel_event) -> None:
		try:
			utils.run_process(cmd, timeout=self.timeout, cancel_event=cancel_event)
		except CommandError as exc:
			raise EncodingError(f"sticker encoding failed: {exc}") from exc

	#============================
	def _read_output(self, output_path: str, schedule: FrameSchedule) -> MediaBlob:
		if not os.path.isfile(output_path):
			raise EncodingError(f"encoder did not produce {output_path}")
		if os.path.getsize(output_path) == 0:
			raise EncodingError(f"encoder produced an empty file: {output_path}")
		info = describe_webp(output_path)
		with open(output_path, 'rb') as handle:
			data = handle.read()
		duration = None
		if not schedule.is_static:
			duration = info['duration_ms'] / 1000.0
		return MediaBlob(data, OUTPUT_MIMETYPE, filename=OUTPUT_NAME,
			width=info['width'], height=info['height'], duration=duration)
