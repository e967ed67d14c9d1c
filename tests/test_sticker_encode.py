#!/usr/bin/env python3

"""
Pytest coverage for WebP sticker encoding commands and output checks.
"""

# Standard Library
import os
import subprocess
import sys

# PIP3 modules
import PIL.Image
import pytest

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
	sys.path.insert(0, REPO_ROOT)

# local repo modules
from stickerlib.core import utils
from stickerlib.core.errors import EncodingError
from stickerlib.core.models import FrameSchedule
from stickerlib.core.workspace import TempWorkspace
from stickerlib.media import ffmpeg_encode
from stickerlib.media.ffmpeg_encode import StickerEncoder

#============================================

def _write_webp(path: str, frame_count: int, frame_ms: int) -> None:
	frames = []
	for index in range(frame_count):
		shade = (index * 40) % 256
		frames.append(PIL.Image.new("RGBA", (512, 512), (shade, 0, 255 - shade, 255)))
	if frame_count == 1:
		frames[0].save(path, "WEBP", quality=90)
		return
	frames[0].save(path, "WEBP", save_all=True, append_images=frames[1:],
		duration=frame_ms, loop=0, quality=90)

#============================================

def _fake_encoder_runner(calls: list):
	"""
	Build a run_process stand-in that writes a real WebP to the output path.
	"""
	def _fake_run(cmd, timeout=None, cancel_event=None):
		calls.append(cmd)
		frame_count = int(cmd[cmd.index('-frames:v') + 1])
		frame_ms = 100
		if '-framerate' in cmd:
			frame_ms = int(round(1000.0 / float(cmd[cmd.index('-framerate') + 1])))
		_write_webp(cmd[-1], frame_count, frame_ms)
		return subprocess.CompletedProcess(cmd, 0, stdout='', stderr='')
	return _fake_run

#============================================

def _make_frames(workspace, indexes: list) -> list:
	frame_dir = workspace.add_dir("frames")
	frames = []
	for index in indexes:
		filepath = workspace.add_file(os.path.join("frames", f"frame-{index:05d}.png"))
		PIL.Image.new("RGBA", (512, 512), (0, 0, 0, 0)).save(filepath)
		frames.append(filepath)
	assert os.path.isdir(frame_dir)
	return frames

#============================================

def test_encode_frames_command(monkeypatch, tmp_path) -> None:
	calls = []
	monkeypatch.setattr(utils, "run_process", _fake_encoder_runner(calls))
	workspaces = TempWorkspace(str(tmp_path))
	workspace = workspaces.create()
	frames = _make_frames(workspace, range(1, 11))
	schedule = FrameSchedule(frame_count=10, fps=10.0, duration=1.0)
	blob = StickerEncoder().encode(frames, schedule, workspace)
	cmd = calls[0]
	assert cmd[cmd.index('-framerate') + 1] == '10'
	assert cmd[cmd.index('-start_number') + 1] == '1'
	assert cmd[cmd.index('-i') + 1] == os.path.join(workspace.path, "frames", "frame-%05d.png")
	assert cmd[cmd.index('-c:v') + 1] == 'libwebp'
	assert cmd[cmd.index('-q:v') + 1] == '100'
	assert cmd[cmd.index('-loop') + 1] == '0'
	assert cmd[cmd.index('-lossless') + 1] == '0'
	assert cmd[-1] == os.path.join(workspace.path, ffmpeg_encode.OUTPUT_NAME)
	assert blob.mimetype == "image/webp"
	assert (blob.width, blob.height) == (512, 512)
	assert blob.duration == pytest.approx(1.0)
	assert blob.data[:4] == b'RIFF'
	workspaces.release(workspace)

#============================================

def test_encode_static_direct(monkeypatch, tmp_path) -> None:
	calls = []
	monkeypatch.setattr(utils, "run_process", _fake_encoder_runner(calls))
	workspaces = TempWorkspace(str(tmp_path))
	workspace = workspaces.create()
	input_path = workspace.write_file("input.jpg", b"jpeg")
	schedule = FrameSchedule(frame_count=1, fps=30.0)
	blob = StickerEncoder(quality=80).encode(input_path, schedule, workspace)
	cmd = calls[0]
	assert cmd[cmd.index('-i') + 1] == input_path
	assert cmd[cmd.index('-frames:v') + 1] == '1'
	assert cmd[cmd.index('-vf') + 1].startswith("scale=512:512")
	assert cmd[cmd.index('-q:v') + 1] == '80'
	assert '-loop' not in cmd
	assert blob.duration is None
	workspaces.release(workspace)

#============================================

def test_encode_animated_direct(monkeypatch, tmp_path) -> None:
	calls = []
	monkeypatch.setattr(utils, "run_process", _fake_encoder_runner(calls))
	workspaces = TempWorkspace(str(tmp_path))
	workspace = workspaces.create()
	input_path = workspace.write_file("input.mp4", b"mp4")
	schedule = FrameSchedule(frame_count=30, fps=3.0, duration=10.0)
	blob = StickerEncoder().encode_direct(input_path, schedule, workspace)
	cmd = calls[0]
	assert cmd[cmd.index('-vf') + 1].startswith("fps=3,scale=512:512")
	assert cmd[cmd.index('-frames:v') + 1] == '30'
	assert cmd[cmd.index('-loop') + 1] == '0'
	# duration comes from the encoded file: 30 frames at 100 ms
	assert blob.duration == pytest.approx(3.0)
	workspaces.release(workspace)

#============================================

def test_non_contiguous_frames_are_restaged(monkeypatch, tmp_path) -> None:
	calls = []
	monkeypatch.setattr(utils, "run_process", _fake_encoder_runner(calls))
	workspaces = TempWorkspace(str(tmp_path))
	workspace = workspaces.create()
	frames = _make_frames(workspace, [1, 3, 5, 7])
	schedule = FrameSchedule(frame_count=4, fps=4.0, duration=1.0)
	StickerEncoder().encode(frames, schedule, workspace)
	cmd = calls[0]
	sequence_dir = os.path.join(workspace.path, ffmpeg_encode.SEQUENCE_DIR)
	assert cmd[cmd.index('-i') + 1] == os.path.join(sequence_dir, "frame-%05d.png")
	assert sorted(os.listdir(sequence_dir)) == [
		"frame-00001.png", "frame-00002.png", "frame-00003.png", "frame-00004.png",
	]
	workspaces.release(workspace)
	assert os.listdir(str(tmp_path)) == []

#============================================

def test_empty_output_raises(monkeypatch, tmp_path) -> None:
	def _empty_run(cmd, timeout=None, cancel_event=None):
		with open(cmd[-1], 'wb'):
			pass
		return subprocess.CompletedProcess(cmd, 0, stdout='', stderr='')

	monkeypatch.setattr(utils, "run_process", _empty_run)
	workspaces = TempWorkspace(str(tmp_path))
	workspace = workspaces.create()
	input_path = workspace.write_file("input.png", b"png")
	with pytest.raises(EncodingError):
		StickerEncoder().encode(input_path, FrameSchedule(frame_count=1, fps=30.0), workspace)
	workspaces.release(workspace)

#============================================

def test_non_webp_output_raises(monkeypatch, tmp_path) -> None:
	def _png_run(cmd, timeout=None, cancel_event=None):
		PIL.Image.new("RGB", (8, 8)).save(cmd[-1], "PNG")
		return subprocess.CompletedProcess(cmd, 0, stdout='', stderr='')

	monkeypatch.setattr(utils, "run_process", _png_run)
	workspaces = TempWorkspace(str(tmp_path))
	workspace = workspaces.create()
	input_path = workspace.write_file("input.png", b"png")
	with pytest.raises(EncodingError):
		StickerEncoder().encode(input_path, FrameSchedule(frame_count=1, fps=30.0), workspace)
	workspaces.release(workspace)

#============================================

def test_no_frames_raises(tmp_path) -> None:
	workspaces = TempWorkspace(str(tmp_path))
	workspace = workspaces.create()
	schedule = FrameSchedule(frame_count=3, fps=3.0, duration=1.0)
	with pytest.raises(EncodingError):
		StickerEncoder().encode_frames([], schedule, workspace)
	workspaces.release(workspace)

#============================================

def test_describe_webp_sums_frame_durations(tmp_path) -> None:
	path = str(tmp_path / "anim.webp")
	_write_webp(path, 5, 200)
	info = ffmpeg_encode.describe_webp(path)
	assert info['duration_ms'] == 1000
	assert (info['width'], info['height']) == (512, 512)

#============================================

class _BrokenAnimation():
	"""Pillow image stand-in whose second frame cannot be reached."""
	format = 'WEBP'
	n_frames = 3
	size = (512, 512)

	def __init__(self):
		self.info = {'duration': 100}

	def __enter__(self):
		return self

	def __exit__(self, exc_type, exc_value, traceback) -> None:
		return None

	def seek(self, index: int) -> None:
		if index > 0:
			raise EOFError("no more images in WebP file")

#============================================

def test_truncated_animation_raises_encoding_error(monkeypatch, tmp_path) -> None:
	path = str(tmp_path / "broken.webp")
	_write_webp(path, 3, 100)
	monkeypatch.setattr(PIL.Image, "open", lambda filepath: _BrokenAnimation())
	with pytest.raises(EncodingError):
		ffmpeg_encode.describe_webp(path)
