#!/usr/bin/env python3

"""
Turn downloaded chat media into a sticker ready for the messaging client.
"""

# Standard Library
import threading

# local repo modules
from stickerlib.core import config
from stickerlib.core import utils
from stickerlib.core.errors import EncodingError
from stickerlib.core.models import MediaBlob
from stickerlib.core.models import TranscodeResult
from stickerlib.core.pipeline import KIND_GIF
from stickerlib.core.pipeline import KIND_VIDEO
from stickerlib.core.pipeline import TranscodePipeline
from stickerlib.core.pipeline import classify_mimetype
from stickerlib.media import webp_exif

#============================================

class Sticker():
	"""
	A sticker payload plus the annotations the client sends with it.
	"""
	def __init__(self, result: TranscodeResult, blob: MediaBlob, name: str,
		author: str, categories: list, quality: int, animated: bool):
		self._result = result
		self.blob = blob
		self.name = name
		self.author = author
		self.categories = list(categories)
		self.quality = quality
		self.animated = animated

	#============================
	@property
	def transcoded(self) -> bool:
		return self._result.transcoded

	#============================
	@property
	def schedule(self):
		return self._result.schedule

	#============================
	def send_options(self) -> dict:
		return {
			'send_media_as_sticker': True,
			'sticker_name': self.name,
			'sticker_author': self.author,
			'sticker_categories': list(self.categories),
			'quality': self.quality,
		}

	#============================
	def release(self) -> None:
		self._result.release()

	#============================
	def __enter__(self) -> "Sticker":
		return self

	#============================
	def __exit__(self, exc_type, exc_value, traceback) -> None:
		self.release()

#============================================

class StickerMaker():
	def __init__(self, settings: dict = None, pipeline: TranscodePipeline = None):
		if settings is None:
			settings = config.load_settings()
		self.settings = settings
		if pipeline is None:
			pipeline = TranscodePipeline.from_settings(settings)
		self.pipeline = pipeline

	#============================
	def is_animated(self, blob: MediaBlob, message_type: str = None) -> bool:
		kind = classify_mimetype(blob.mimetype, message_type)
		return kind in (KIND_GIF, KIND_VIDEO)

	#============================
	def default_categories(self, animated: bool) -> list:
		categories = self.settings['sticker']['categories']
		if animated:
			return list(categories['animated'])
		return list(categories['static'])

	#============================
	def make_sticker(self, blob: MediaBlob, name: str = None, author: str = None,
		categories: list = None, message_type: str = None,
		cancel_event: threading.Event = None) -> Sticker:
		"""
		Run the transcode pipeline and attach sticker annotations.

		Args:
			blob: Downloaded media.
			name: Sticker pack name, defaults to settings.
			author: Sticker author, defaults to settings.
			categories: Emoji tags, defaults by animated/static.
			message_type: Messaging client type hint ("gif", "video", "image").
			cancel_event: Optional cancellation event.

		Returns:
			Sticker: The sticker, which must be released after sending.
		"""
		sticker_settings = self.settings['sticker']
		if name is None:
			name = sticker_settings['name']
		if author is None:
			author = sticker_settings['author']
		result = self.pipeline.run(blob, cancel_event=cancel_event,
			message_type=message_type)
		if result.schedule is not None:
			# a zero-duration video is encoded as one still frame
			animated = not result.schedule.is_static
		else:
			animated = self.is_animated(blob, message_type)
		if categories is None:
			categories = self.default_categories(animated)
		output = result.blob
		if result.transcoded and sticker_settings['embed_metadata']:
			output = self._embed_metadata(output, name, author, categories)
		return Sticker(result, output, name=name, author=author,
			categories=categories, quality=self.settings['limits']['quality'],
			animated=animated)

	#============================
	def _embed_metadata(self, blob: MediaBlob, name: str, author: str,
		categories: list) -> MediaBlob:
		exif_data = webp_exif.build_sticker_exif(name, author, categories)
		try:
			data = webp_exif.embed_exif(blob.data, exif_data)
		except EncodingError as exc:
			utils.report_message(f"sticker metadata not embedded: {exc}")
			return blob
		return blob.with_metadata(data=data)
