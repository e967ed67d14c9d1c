#!/usr/bin/env python3

import shlex
import shutil
import subprocess
import sys
import time
from fractions import Fraction
from stickerlib.core.errors import CommandError
from stickerlib.core.errors import CommandTimeout
from stickerlib.core.errors import JobCancelled

#============================================

POLL_SECONDS = 0.1

_QUIET_MODE = False
_COMMAND_REPORTER = None
_MESSAGE_REPORTER = None

#============================================

def set_quiet_mode(quiet: bool) -> None:
	global _QUIET_MODE
	_QUIET_MODE = bool(quiet)

#============================================

def is_quiet_mode() -> bool:
	return _QUIET_MODE

#============================================

def set_command_reporter(reporter) -> None:
	global _COMMAND_REPORTER
	_COMMAND_REPORTER = reporter

#============================================

def clear_command_reporter() -> None:
	set_command_reporter(None)

#============================================

def set_message_reporter(reporter) -> None:
	global _MESSAGE_REPORTER
	_MESSAGE_REPORTER = reporter

#============================================

def clear_message_reporter() -> None:
	set_message_reporter(None)

#============================================

def report_message(text: str) -> None:
	"""
	Send a diagnostic line to the host reporter, or stderr when none is set.
	"""
	if _MESSAGE_REPORTER is not None:
		_MESSAGE_REPORTER(text)
		return
	if not _QUIET_MODE:
		print(text, file=sys.stderr)

#============================================

def _report_command(showcmd: str) -> None:
	if _COMMAND_REPORTER is not None:
		_COMMAND_REPORTER(showcmd)
	if not _QUIET_MODE:
		print(f"CMD: '{showcmd}'")

#============================================

def _kill_process(proc: subprocess.Popen) -> None:
	if proc.poll() is None:
		proc.kill()
	proc.communicate()

#============================================

def run_process(cmd: list, timeout: float = None,
	cancel_event=None) -> subprocess.CompletedProcess:
	"""
	Run an external command, waiting until it exits, times out, or the
	job is cancelled.

	Args:
		cmd: Command list to execute.
		timeout: Wall-clock limit in seconds, None for no limit.
		cancel_event: Optional threading.Event; setting it kills the child.

	Returns:
		subprocess.CompletedProcess: Completed process with text output.
	"""
	showcmd = shlex.join(cmd)
	_report_command(showcmd)
	try:
		proc = subprocess.Popen(cmd, stdin=subprocess.DEVNULL,
			stdout=subprocess.PIPE, stderr=subprocess.PIPE,
			encoding='utf-8', errors='replace')
	except OSError as exc:
		raise CommandError(f"cannot run {cmd[0]}: {exc}") from exc
	deadline = None
	if timeout is not None:
		deadline = time.monotonic() + float(timeout)
	try:
		while True:
			try:
				stdout, stderr = proc.communicate(timeout=POLL_SECONDS)
				break
			except subprocess.TimeoutExpired:
				pass
			if cancel_event is not None and cancel_event.is_set():
				raise JobCancelled(f"cancelled while running: {showcmd}")
			if deadline is not None and time.monotonic() >= deadline:
				raise CommandTimeout(
					f"command timed out after {float(timeout):.1f} seconds: {showcmd}")
	except BaseException:
		_kill_process(proc)
		raise
	if proc.returncode != 0:
		stderr_text = (stderr or '').strip()
		raise CommandError(f"command failed: {showcmd}\n{stderr_text}",
			returncode=proc.returncode, stderr=stderr_text)
	return subprocess.CompletedProcess(cmd, proc.returncode, stdout, stderr)

#============================================

def have_command(cmd_name: str) -> bool:
	return shutil.which(cmd_name) is not None

#============================================

def parse_fps(raw_fps) -> Fraction:
	if raw_fps is None:
		raise RuntimeError("frame rate is required")
	if isinstance(raw_fps, int):
		return Fraction(raw_fps, 1)
	if isinstance(raw_fps, float):
		return Fraction(str(raw_fps))
	if isinstance(raw_fps, str):
		if '/' in raw_fps:
			parts = raw_fps.split('/')
			if int(parts[1]) == 0:
				raise RuntimeError(f"invalid frame rate: {raw_fps}")
			return Fraction(int(parts[0]), int(parts[1]))
		return Fraction(raw_fps)
	raise RuntimeError("frame rate must be int, float, or fraction string")

#============================================

def to_fraction(value) -> Fraction:
	if isinstance(value, Fraction):
		return value
	return Fraction(str(value))

#============================================

def format_rate(value: float) -> str:
	text = f"{float(value):.6f}".rstrip('0').rstrip('.')
	return text

#============================================

def make_timestamp() -> str:
	datestamp = time.strftime("%y%b%d").lower()
	uppercase = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
	hourstamp = uppercase[(time.localtime()[3]) % 26]
	minstamp = f"{time.localtime()[4]:02d}"
	secstamp = uppercase[(time.localtime()[5]) % 26]
	timestamp = datestamp + hourstamp + minstamp + secstamp
	return timestamp
