#!/usr/bin/env python3

import os
import re
from stickerlib.core import utils
from stickerlib.core.errors import CommandError
from stickerlib.core.errors import ExtractionError
from stickerlib.core.models import FrameSchedule
from stickerlib.core.workspace import Workspace

#============================================

EXTRACT_TIMEOUT = 30.0
FRAME_DIR = "frames"
FRAME_PREFIX = "frame-"
FRAME_PATTERN = FRAME_PREFIX + "%05d.png"
FRAME_NAME_RE = re.compile(r"^" + re.escape(FRAME_PREFIX) + r"(\d+)\.png$")

#============================================

def canvas_filter(width: int, height: int) -> str:
	"""
	Scale to fit the canvas keeping aspect ratio, then pad with transparency.
	"""
	vf = f"scale={width}:{height}:force_original_aspect_ratio=decrease"
	vf += ",format=rgba"
	vf += f",pad={width}:{height}:(ow-iw)/2:(oh-ih)/2:color=0x00000000"
	return vf

#============================================

def frame_index(filename: str) -> int:
	match = FRAME_NAME_RE.match(filename)
	if match is None:
		return None
	return int(match.group(1))

#============================================

def list_frames(frame_dir: str) -> list:
	"""
	List extracted frames sorted by their numeric index.
	"""
	indexed = []
	for filename in os.listdir(frame_dir):
		index = frame_index(filename)
		if index is None:
			continue
		indexed.append((index, os.path.join(frame_dir, filename)))
	indexed.sort()
	return [filepath for _, filepath in indexed]

#============================================

class FrameExtractor():
	def __init__(self, ffmpeg: str = 'ffmpeg', timeout: float = EXTRACT_TIMEOUT):
		self.ffmpeg = ffmpeg
		self.timeout = timeout

	#============================
	def build_command(self, input_path: str, schedule: FrameSchedule,
		frame_dir: str) -> list:
		vf = f"fps={utils.format_rate(schedule.fps)},"
		vf += canvas_filter(schedule.width, schedule.height)
		return [
			self.ffmpeg, "-y", "-hide_banner", "-loglevel", "error",
			"-i", input_path,
			"-vf", vf,
			"-frames:v", str(schedule.frame_count),
			"-an", "-sn",
			os.path.join(frame_dir, FRAME_PATTERN),
		]

	#============================
	def extract(self, input_path: str, schedule: FrameSchedule,
		workspace: Workspace, cancel_event=None) -> list:
		frame_dir = workspace.add_dir(FRAME_DIR)
		cmd = self.build_command(input_path, schedule, frame_dir)
		try:
			utils.run_process(cmd, timeout=self.timeout, cancel_event=cancel_event)
		except CommandError as exc:
			raise ExtractionError(f"frame extraction failed: {exc}") from exc
		frames = list_frames(frame_dir)
		if len(frames) == 0:
			raise ExtractionError(f"frame extraction produced no frames for {input_path}")
		for filepath in frames:
			workspace.add_file(os.path.relpath(filepath, workspace.path))
		return frames
