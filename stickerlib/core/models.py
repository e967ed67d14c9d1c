#!/usr/bin/env python3

"""
Value types passed between the sticker pipeline stages.
"""

# Standard Library
import base64
import mimetypes
import os
from dataclasses import dataclass, field, replace
from typing import Optional

#============================================

@dataclass(frozen=True)
class MediaBlob:
	"""
	Raw media payload as handed over by the messaging client.

	Fields:
		data: Raw bytes.
		mimetype: Declared MIME type, for example "image/gif".
		filename: Optional filename hint.
		width: Optional pixel width.
		height: Optional pixel height.
		duration: Optional playback duration in seconds.
	"""

	data: bytes
	mimetype: str
	filename: Optional[str] = None
	width: Optional[int] = None
	height: Optional[int] = None
	duration: Optional[float] = None

	#============================
	@property
	def size(self) -> int:
		return len(self.data)

	#============================
	def with_metadata(self, **changes) -> "MediaBlob":
		return replace(self, **changes)

	#============================
	def to_base64(self) -> str:
		return base64.b64encode(self.data).decode('ascii')

	#============================
	@classmethod
	def from_base64(cls, text: str, mimetype: str,
		filename: str = None) -> "MediaBlob":
		return cls(base64.b64decode(text), mimetype, filename=filename)

	#============================
	@classmethod
	def from_file(cls, filepath: str, mimetype: str = None) -> "MediaBlob":
		if mimetype is None:
			mimetype = mimetypes.guess_type(filepath)[0]
		if mimetype is None:
			mimetype = 'application/octet-stream'
		with open(filepath, 'rb') as handle:
			data = handle.read()
		return cls(data, mimetype, filename=os.path.basename(filepath))

#============================================

@dataclass(frozen=True)
class ProbeResult:
	"""
	Stream metadata read by ffprobe. A duration of 0 means unknown or static.
	"""

	duration: float
	fps: float
	streams: dict = field(default_factory=dict, compare=False)
	width: Optional[int] = None
	height: Optional[int] = None

#============================================

@dataclass(frozen=True)
class FrameSchedule:
	frame_count: int
	fps: float
	width: int = 512
	height: int = 512
	duration: float = 0.0

	#============================
	@property
	def is_static(self) -> bool:
		return self.frame_count == 1 and self.duration <= 0

	#============================
	@property
	def frame_duration_ms(self) -> float:
		return 1000.0 / self.fps

#============================================

class TranscodeResult():
	"""
	Outcome of one pipeline job.

	Either a transcoded WebP blob with a release handle for the workspace
	that backs it, or the original blob with no handle (fallback).
	"""
	def __init__(self, blob: MediaBlob, schedule: FrameSchedule = None,
		release_handle=None, fallback_reason: str = None, states: list = None,
		output_path: str = None):
		if release_handle is not None and fallback_reason is not None:
			raise ValueError("a fallback result cannot own a workspace")
		self.blob = blob
		self.schedule = schedule
		self.fallback_reason = fallback_reason
		self.states = list(states or [])
		self.output_path = output_path
		self._release_handle = release_handle

	#============================
	@property
	def transcoded(self) -> bool:
		return self.schedule is not None and self.fallback_reason is None

	#============================
	@property
	def release_handle(self):
		return self._release_handle

	#============================
	@property
	def released(self) -> bool:
		return self._release_handle is None

	#============================
	def release(self) -> None:
		handle = self._release_handle
		self._release_handle = None
		self.output_path = None
		if handle is not None:
			handle()

	#============================
	def __enter__(self) -> "TranscodeResult":
		return self

	#============================
	def __exit__(self, exc_type, exc_value, traceback) -> None:
		self.release()
