#!/usr/bin/env python3

"""
ffprobe wrapper that reads duration and frame rate for one media file.
"""

# Standard Library
import json

# local repo modules
from stickerlib.core import utils
from stickerlib.core.errors import CommandError
from stickerlib.core.errors import ProbeError
from stickerlib.core.models import ProbeResult

#============================================

PROBE_TIMEOUT = 15.0
DEFAULT_FPS = 30.0

#============================================

def _stream_fps(stream: dict) -> float:
	"""
	Read a stream frame rate, preferring the averaged rate.

	GIF streams report a nominal r_frame_rate of 100/1 from the centisecond
	timebase, so avg_frame_rate is tried first.

	Args:
		stream: ffprobe stream mapping.

	Returns:
		float: Frame rate, or None when the stream has no usable rate.
	"""
	for key in ('avg_frame_rate', 'r_frame_rate'):
		raw_value = stream.get(key)
		if raw_value is None or raw_value in ('0/0', '0', 'N/A'):
			continue
		try:
			fps = utils.parse_fps(str(raw_value))
		except (RuntimeError, ValueError, ZeroDivisionError):
			continue
		if fps > 0:
			return float(fps)
	return None

#============================================

def _parse_float(value) -> float:
	if value is None or value == 'N/A':
		return None
	try:
		return float(value)
	except (TypeError, ValueError):
		return None

#============================================

def parse_probe_output(text: str, default_fps: float = DEFAULT_FPS) -> ProbeResult:
	"""
	Build a ProbeResult from `ffprobe -show_format -show_streams -of json`.

	Args:
		text: ffprobe stdout.
		default_fps: Rate used when the stream reports none.

	Returns:
		ProbeResult: Parsed metadata.
	"""
	try:
		data = json.loads(text)
	except (TypeError, ValueError) as exc:
		raise ProbeError(f"unparsable ffprobe output: {exc}") from exc
	if not isinstance(data, dict):
		raise ProbeError("ffprobe output must be a mapping")
	streams = data.get('streams', [])
	if not isinstance(streams, list):
		raise ProbeError("invalid ffprobe stream list")
	video_stream = None
	for stream in streams:
		if isinstance(stream, dict) and stream.get('codec_type') == 'video':
			video_stream = stream
			break
	if video_stream is None:
		raise ProbeError("no video stream found")
	format_info = data.get('format', {})
	if not isinstance(format_info, dict):
		format_info = {}
	duration = _parse_float(format_info.get('duration'))
	if duration is None:
		duration = _parse_float(video_stream.get('duration'))
	if duration is None or duration < 0:
		duration = 0.0
	fps = _stream_fps(video_stream)
	if fps is None:
		fps = float(default_fps)
	width = video_stream.get('width')
	height = video_stream.get('height')
	return ProbeResult(
		duration=duration,
		fps=fps,
		streams=data,
		width=int(width) if width else None,
		height=int(height) if height else None,
	)

#============================================

class MediaProbe():
	def __init__(self, ffprobe: str = 'ffprobe', timeout: float = PROBE_TIMEOUT,
		default_fps: float = DEFAULT_FPS):
		self.ffprobe = ffprobe
		self.timeout = timeout
		self.default_fps = default_fps

	#============================
	def build_command(self, input_path: str) -> list:
		return [
			self.ffprobe, "-v", "error",
			"-show_format", "-show_streams",
			"-of", "json",
			input_path,
		]

	#============================
	def probe(self, input_path: str, cancel_event=None) -> ProbeResult:
		cmd = self.build_command(input_path)
		try:
			proc = utils.run_process(cmd, timeout=self.timeout,
				cancel_event=cancel_event)
		except CommandError as exc:
			raise ProbeError(f"probe failed for {input_path}: {exc}") from exc
		return parse_probe_output(proc.stdout, default_fps=self.default_fps)
