#!/usr/bin/env python3

import itertools
import os
import shutil
import tempfile
import threading
from stickerlib.core import utils
from stickerlib.core.errors import ResourceError

#============================================

WORKSPACE_PREFIX = "sticker"

_SEQUENCE = itertools.count(1)
_SEQUENCE_LOCK = threading.Lock()

#============================================

def default_scratch_root() -> str:
	return os.path.join(tempfile.gettempdir(), "stickerlib")

#============================================

def _next_sequence() -> int:
	with _SEQUENCE_LOCK:
		return next(_SEQUENCE)

#============================================

class Workspace():
	"""
	One job's scratch directory and the files registered inside it.
	"""
	def __init__(self, path: str, token: str):
		self.path = path
		self.token = token
		self.files = []
		self.dirs = []
		self.released = False

	#============================
	def add_file(self, filename: str) -> str:
		filepath = self._member_path(filename)
		if filepath not in self.files:
			self.files.append(filepath)
		return filepath

	#============================
	def add_dir(self, dirname: str) -> str:
		dirpath = self._member_path(dirname)
		if dirpath not in self.dirs:
			os.makedirs(dirpath, exist_ok=True)
			self.dirs.append(dirpath)
		return dirpath

	#============================
	def write_file(self, filename: str, data: bytes) -> str:
		filepath = self.add_file(filename)
		with open(filepath, 'wb') as handle:
			handle.write(data)
		return filepath

	#============================
	def _member_path(self, name: str) -> str:
		if self.released:
			raise ResourceError(f"workspace {self.token} was already released")
		filepath = os.path.abspath(os.path.join(self.path, name))
		if os.path.commonpath([filepath, self.path]) != self.path or filepath == self.path:
			raise ResourceError(f"path escapes workspace {self.token}: {name}")
		return filepath

	#============================
	def __repr__(self) -> str:
		return f"Workspace({self.path!r})"

#============================================

class TempWorkspace():
	"""
	Allocates and removes per-job directories under one scratch root.
	"""
	def __init__(self, scratch_root: str = None):
		if scratch_root is None:
			scratch_root = default_scratch_root()
		self.scratch_root = os.path.abspath(scratch_root)

	#============================
	def create(self) -> Workspace:
		try:
			os.makedirs(self.scratch_root, exist_ok=True)
		except OSError as exc:
			raise ResourceError(
				f"cannot create scratch root {self.scratch_root}: {exc}") from exc
		if not os.access(self.scratch_root, os.W_OK | os.X_OK):
			raise ResourceError(f"scratch root is not writable: {self.scratch_root}")
		timestamp = utils.make_timestamp()
		pid = os.getpid()
		while True:
			token = f"{WORKSPACE_PREFIX}-{timestamp}-{pid}-{_next_sequence():04d}"
			path = os.path.join(self.scratch_root, token)
			try:
				os.mkdir(path)
			except FileExistsError:
				continue
			except OSError as exc:
				raise ResourceError(f"cannot create workspace {path}: {exc}") from exc
			return Workspace(path, token)

	#============================
	def release(self, workspace: Workspace) -> None:
		"""
		Delete a workspace: registered files, then leftovers, then the directory.
		Safe to call more than once. Failures are reported, not raised.
		"""
		if workspace is None or workspace.released:
			return
		workspace.released = True
		if not self._owns(workspace.path):
			utils.report_message(
				f"refusing to remove {workspace.path}: outside {self.scratch_root}")
			return
		for filepath in workspace.files:
			try:
				if os.path.lexists(filepath):
					os.remove(filepath)
			except OSError as exc:
				utils.report_message(f"cleanup failed for {filepath}: {exc}")
		for dirpath in reversed(workspace.dirs):
			self._remove_tree(dirpath)
		self._remove_tree(workspace.path)

	#============================
	def _owns(self, path: str) -> bool:
		path = os.path.abspath(path)
		if path == self.scratch_root:
			return False
		return os.path.commonpath([path, self.scratch_root]) == self.scratch_root

	#============================
	def _remove_tree(self, dirpath: str) -> None:
		if not os.path.lexists(dirpath):
			return
		try:
			shutil.rmtree(dirpath)
		except OSError as exc:
			utils.report_message(f"cleanup failed for {dirpath}: {exc}")
