#!/usr/bin/env python3

import functools
import mimetypes
import os
from stickerlib.core import utils
from stickerlib.core.errors import EncodingError
from stickerlib.core.errors import ExtractionError
from stickerlib.core.errors import JobCancelled
from stickerlib.core.errors import ProbeError
from stickerlib.core.errors import ResourceError
from stickerlib.core.models import MediaBlob
from stickerlib.core.models import TranscodeResult
from stickerlib.core.schedule import FrameScheduler
from stickerlib.core.workspace import TempWorkspace
from stickerlib.media.ffmpeg_encode import OUTPUT_NAME
from stickerlib.media.ffmpeg_encode import StickerEncoder
from stickerlib.media.ffmpeg_extract import FrameExtractor
from stickerlib.media.ffprobe import MediaProbe

#============================================

STATE_INIT = 'init'
STATE_PROBED = 'probed'
STATE_SCHEDULED = 'scheduled'
STATE_EXTRACTED = 'extracted'
STATE_ENCODED = 'encoded'
STATE_FAILED = 'failed'
STATE_DONE = 'done'
STATE_ABORTED = 'aborted'

KIND_GIF = 'gif'
KIND_VIDEO = 'video'
KIND_IMAGE = 'image'
KIND_OTHER = 'other'

FALLBACK_ERRORS = (ProbeError, ExtractionError, EncodingError)

#============================================

def classify_mimetype(mimetype: str, message_type: str = None) -> str:
	"""
	Sort a payload into gif, video, image, or other.

	A message_type of "gif" wins over the MIME type, since messaging
	clients deliver GIFs as video/mp4.
	"""
	if message_type is not None and message_type.lower() == KIND_GIF:
		return KIND_GIF
	mimetype = (mimetype or '').split(';')[0].strip().lower()
	if 'gif' in mimetype:
		return KIND_GIF
	if mimetype.startswith('video/'):
		return KIND_VIDEO
	if mimetype.startswith('image/'):
		return KIND_IMAGE
	return KIND_OTHER

#============================================

def input_filename(blob: MediaBlob) -> str:
	extension = None
	if blob.filename:
		extension = os.path.splitext(blob.filename)[1].lower()
	if not extension:
		extension = mimetypes.guess_extension((blob.mimetype or '').split(';')[0].strip())
	if not extension:
		extension = '.bin'
	return f"input{extension}"

#============================================

class TranscodePipeline():
	"""
	Probe, schedule, extract, and encode one media blob into a sticker.

	Holds configuration only, so one instance can serve concurrent jobs.
	"""
	def __init__(self, workspaces: TempWorkspace = None, probe: MediaProbe = None,
		scheduler: FrameScheduler = None, extractor: FrameExtractor = None,
		encoder: StickerEncoder = None, normalize_static_images: bool = True):
		self.workspaces = workspaces or TempWorkspace()
		self.probe = probe or MediaProbe()
		self.scheduler = scheduler or FrameScheduler()
		self.extractor = extractor or FrameExtractor()
		self.encoder = encoder or StickerEncoder()
		self.normalize_static_images = normalize_static_images

	#============================
	@classmethod
	def from_settings(cls, settings: dict) -> "TranscodePipeline":
		engine = settings['engine']
		limits = settings['limits']
		return cls(
			workspaces=TempWorkspace(settings['io']['scratch_root']),
			probe=MediaProbe(ffprobe=engine['ffprobe'],
				timeout=engine['probe_timeout'], default_fps=limits['default_fps']),
			scheduler=FrameScheduler(max_frames=limits['max_frames'],
				width=limits['width'], height=limits['height'],
				default_fps=limits['default_fps']),
			extractor=FrameExtractor(ffmpeg=engine['ffmpeg'],
				timeout=engine['extract_timeout']),
			encoder=StickerEncoder(ffmpeg=engine['ffmpeg'],
				timeout=engine['encode_timeout'], quality=limits['quality']),
			normalize_static_images=settings['io']['normalize_static_images'],
		)

	#============================
	def run(self, blob: MediaBlob, cancel_event=None,
		message_type: str = None) -> TranscodeResult:
		"""
		Transcode a blob, falling back to the original on any engine failure.

		Args:
			blob: Input media.
			cancel_event: Optional threading.Event that aborts the job.
			message_type: Optional messaging-client type hint ("gif").

		Returns:
			TranscodeResult: Transcoded sticker or the untouched original.
		"""
		kind = classify_mimetype(blob.mimetype, message_type)
		states = [STATE_INIT]
		if kind == KIND_OTHER or (kind == KIND_IMAGE and not self.normalize_static_images):
			states.append(STATE_DONE)
			return TranscodeResult(blob, states=states)
		if cancel_event is not None and cancel_event.is_set():
			raise JobCancelled("job cancelled before start")
		workspace = self.workspaces.create()
		job = {'id': workspace.token, 'kind': kind, 'duration': None}
		keep_workspace = False
		try:
			try:
				input_path = workspace.write_file(input_filename(blob), blob.data)
			except OSError as exc:
				raise ResourceError(f"cannot stage input for job {job['id']}: {exc}") from exc
			try:
				(output, schedule) = self._transcode(kind, input_path, workspace,
					states, job, cancel_event)
			except FALLBACK_ERRORS as exc:
				states.append(STATE_FAILED)
				states.append(STATE_DONE)
				self._report_fallback(job, blob, exc)
				return TranscodeResult(blob, fallback_reason=str(exc), states=states)
			states.append(STATE_DONE)
			keep_workspace = True
			release_handle = functools.partial(self.workspaces.release, workspace)
			return TranscodeResult(output, schedule=schedule,
				release_handle=release_handle, states=states,
				output_path=os.path.join(workspace.path, OUTPUT_NAME))
		except BaseException:
			states.append(STATE_ABORTED)
			raise
		finally:
			if not keep_workspace:
				self.workspaces.release(workspace)

	#============================
	def _transcode(self, kind: str, input_path: str, workspace, states: list,
		job: dict, cancel_event) -> tuple:
		if kind == KIND_IMAGE:
			schedule = self.scheduler.static_schedule()
			states.append(STATE_SCHEDULED)
			output = self.encoder.encode(input_path, schedule, workspace,
				cancel_event=cancel_event)
			states.append(STATE_ENCODED)
			return (output, schedule)
		probe = self.probe.probe(input_path, cancel_event=cancel_event)
		states.append(STATE_PROBED)
		job['duration'] = probe.duration
		schedule = self.scheduler.schedule(probe)
		states.append(STATE_SCHEDULED)
		if schedule.is_static:
			output = self.encoder.encode(input_path, schedule, workspace,
				cancel_event=cancel_event)
		else:
			frames = self.extractor.extract(input_path, schedule, workspace,
				cancel_event=cancel_event)
			states.append(STATE_EXTRACTED)
			output = self.encoder.encode(frames, schedule, workspace,
				cancel_event=cancel_event)
		states.append(STATE_ENCODED)
		return (output, schedule)

	#============================
	def _report_fallback(self, job: dict, blob: MediaBlob, exc: Exception) -> None:
		duration = job['duration']
		duration_text = 'unknown' if duration is None else f"{duration:.3f}s"
		utils.report_message(
			f"sticker job {job['id']}: {exc.__class__.__name__} "
			f"({job['kind']}, {blob.mimetype}, duration {duration_text}), "
			f"returning original media: {exc}"
		)
