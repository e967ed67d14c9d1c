#!/usr/bin/env python3

import math
from stickerlib.core import utils
from stickerlib.core.models import FrameSchedule
from stickerlib.core.models import ProbeResult

#============================================

MAX_FRAMES = 30
CANVAS_WIDTH = 512
CANVAS_HEIGHT = 512
DEFAULT_FPS = 30.0

#============================================

def compute_schedule(probe: ProbeResult, max_frames: int = MAX_FRAMES,
	width: int = CANVAS_WIDTH, height: int = CANVAS_HEIGHT,
	default_fps: float = DEFAULT_FPS) -> FrameSchedule:
	"""
	Derive the output frame count and rate from probed stream metadata.

	The frame count is capped at max_frames and the output rate is
	stretched so the sticker plays for the same duration as the source.

	Args:
		probe: Probed duration and source frame rate.
		max_frames: Platform frame ceiling.
		width: Canvas width.
		height: Canvas height.
		default_fps: Rate used for sources without a duration.

	Returns:
		FrameSchedule: Target frame count, rate, and canvas.
	"""
	if max_frames < 1:
		raise ValueError("max_frames must be at least 1")
	duration = float(probe.duration or 0.0)
	if duration <= 0:
		return FrameSchedule(frame_count=1, fps=float(default_fps),
			width=width, height=height, duration=0.0)
	duration_fraction = utils.to_fraction(duration)
	fps_fraction = utils.to_fraction(probe.fps)
	# exact decimal product before ceil
	total_frames = math.ceil(duration_fraction * fps_fraction)
	frame_count = max(1, min(total_frames, max_frames))
	target_fps = float(frame_count / duration_fraction)
	return FrameSchedule(frame_count=frame_count, fps=target_fps,
		width=width, height=height, duration=duration)

#============================================

class FrameScheduler():
	def __init__(self, max_frames: int = MAX_FRAMES, width: int = CANVAS_WIDTH,
		height: int = CANVAS_HEIGHT, default_fps: float = DEFAULT_FPS):
		self.max_frames = max_frames
		self.width = width
		self.height = height
		self.default_fps = default_fps

	#============================
	def schedule(self, probe: ProbeResult) -> FrameSchedule:
		return compute_schedule(probe, max_frames=self.max_frames,
			width=self.width, height=self.height, default_fps=self.default_fps)

	#============================
	def static_schedule(self) -> FrameSchedule:
		return FrameSchedule(frame_count=1, fps=float(self.default_fps),
			width=self.width, height=self.height, duration=0.0)
