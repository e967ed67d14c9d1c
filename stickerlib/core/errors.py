#!/usr/bin/env python3

#============================================

class StickerError(RuntimeError):
	"""Base class for every sticker pipeline fault."""

#============================================

class ConfigError(StickerError):
	pass

#============================================

class CommandError(StickerError):
	"""
	An external command exited non-zero or could not be started.
	"""
	def __init__(self, message: str, returncode: int = None, stderr: str = ''):
		super().__init__(message)
		self.returncode = returncode
		self.stderr = stderr

#============================================

class CommandTimeout(CommandError):
	pass

#============================================

class JobCancelled(StickerError):
	pass

#============================================

class ResourceError(StickerError):
	pass

#============================================

class ProbeError(StickerError):
	pass

#============================================

class ExtractionError(StickerError):
	pass

#============================================

class EncodingError(StickerError):
	pass
