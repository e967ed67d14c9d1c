#!/usr/bin/env python3

"""
Sticker pack metadata stored in the EXIF chunk of a WebP file.

Messaging clients read the pack name, publisher, and emoji tags from a
JSON document placed after a minimal little-endian TIFF header.
"""

# Standard Library
import io
import json
import secrets
import struct

# PIP3 modules
import PIL.Image

# local repo modules
from stickerlib.core.errors import EncodingError

#============================================

# TIFF header, one IFD entry (tag 0x5741, type UNDEFINED), data at offset 22
EXIF_HEADER = bytes([
	0x49, 0x49, 0x2A, 0x00,
	0x08, 0x00, 0x00, 0x00,
	0x01, 0x00,
	0x41, 0x57,
	0x07, 0x00,
	0x00, 0x00, 0x00, 0x00,
	0x16, 0x00, 0x00, 0x00,
])
EXIF_LENGTH_OFFSET = 14

VP8X_FLAG_ANIMATION = 0x02
VP8X_FLAG_XMP = 0x04
VP8X_FLAG_EXIF = 0x08
VP8X_FLAG_ALPHA = 0x10

#============================================

def build_sticker_exif(pack_name: str = '', publisher: str = '',
	emojis: list = None, pack_id: str = None) -> bytes:
	if pack_id is None:
		pack_id = f"stickerlib.{secrets.token_hex(16)}"
	metadata = {
		'sticker-pack-id': pack_id,
		'sticker-pack-name': pack_name or '',
		'sticker-pack-publisher': publisher or '',
	}
	if emojis:
		metadata['emojis'] = list(emojis)
	payload = json.dumps(metadata, separators=(',', ':'),
		ensure_ascii=False).encode('utf-8')
	header = bytearray(EXIF_HEADER)
	header[EXIF_LENGTH_OFFSET:EXIF_LENGTH_OFFSET + 4] = struct.pack('<I', len(payload))
	return bytes(header) + payload

#============================================

def parse_sticker_exif(exif_data: bytes) -> dict:
	if len(exif_data) < len(EXIF_HEADER) or exif_data[:4] != EXIF_HEADER[:4]:
		raise ValueError("not a sticker EXIF block")
	length = struct.unpack('<I',
		exif_data[EXIF_LENGTH_OFFSET:EXIF_LENGTH_OFFSET + 4])[0]
	start = len(EXIF_HEADER)
	return json.loads(exif_data[start:start + length].decode('utf-8'))

#============================================

def split_chunks(webp_data: bytes) -> list:
	"""
	Split a RIFF/WEBP container into (fourcc, payload) pairs.
	"""
	if len(webp_data) < 12 or webp_data[:4] != b'RIFF' or webp_data[8:12] != b'WEBP':
		raise EncodingError("not a RIFF WebP file")
	chunks = []
	pos = 12
	while pos + 8 <= len(webp_data):
		fourcc = webp_data[pos:pos + 4]
		size = struct.unpack('<I', webp_data[pos + 4:pos + 8])[0]
		payload = webp_data[pos + 8:pos + 8 + size]
		if len(payload) != size:
			raise EncodingError(f"truncated WebP chunk {fourcc!r}")
		chunks.append((fourcc, payload))
		pos += 8 + size + (size % 2)
	if len(chunks) == 0:
		raise EncodingError("WebP file has no chunks")
	return chunks

#============================================

def join_chunks(chunks: list) -> bytes:
	body = io.BytesIO()
	body.write(b'WEBP')
	for fourcc, payload in chunks:
		body.write(fourcc)
		body.write(struct.pack('<I', len(payload)))
		body.write(payload)
		if len(payload) % 2 == 1:
			body.write(b'\x00')
	data = body.getvalue()
	return b'RIFF' + struct.pack('<I', len(data)) + data

#============================================

def _canvas_size(webp_data: bytes) -> tuple:
	try:
		with PIL.Image.open(io.BytesIO(webp_data)) as image:
			return image.size
	except OSError as exc:
		raise EncodingError(f"cannot read WebP canvas size: {exc}") from exc

#============================================

def _make_vp8x(flags: int, width: int, height: int) -> bytes:
	payload = bytearray(10)
	payload[0] = flags
	payload[4:7] = (width - 1).to_bytes(3, 'little')
	payload[7:10] = (height - 1).to_bytes(3, 'little')
	return bytes(payload)

#============================================

def embed_exif(webp_data: bytes, exif_data: bytes) -> bytes:
	"""
	Store an EXIF chunk in a WebP file, replacing any existing one.

	Simple (VP8/VP8L only) files are promoted to the extended format so
	the VP8X header can advertise the EXIF chunk.

	Args:
		webp_data: Encoded WebP bytes.
		exif_data: EXIF block from build_sticker_exif().

	Returns:
		bytes: New WebP bytes.
	"""
	chunks = [chunk for chunk in split_chunks(webp_data) if chunk[0] != b'EXIF']
	if chunks[0][0] == b'VP8X':
		vp8x = bytearray(chunks[0][1])
		vp8x[0] |= VP8X_FLAG_EXIF
		chunks[0] = (b'VP8X', bytes(vp8x))
	else:
		(width, height) = _canvas_size(webp_data)
		flags = VP8X_FLAG_EXIF
		if any(fourcc in (b'VP8L', b'ALPH') for fourcc, _ in chunks):
			flags |= VP8X_FLAG_ALPHA
		chunks.insert(0, (b'VP8X', _make_vp8x(flags, width, height)))
	insert_at = len(chunks)
	for index, (fourcc, _) in enumerate(chunks):
		if fourcc == b'XMP ':
			insert_at = index
			break
	chunks.insert(insert_at, (b'EXIF', exif_data))
	return join_chunks(chunks)

#============================================

def read_sticker_metadata(webp_data: bytes) -> dict:
	for fourcc, payload in split_chunks(webp_data):
		if fourcc == b'EXIF':
			return parse_sticker_exif(payload)
	return None
