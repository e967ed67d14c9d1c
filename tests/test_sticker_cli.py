#!/usr/bin/env python3

"""
Pytest coverage for the sticker_cli front end.
"""

# Standard Library
import os
import signal
import subprocess
import sys
import time

# PIP3 modules
import pytest
import yaml

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
	sys.path.insert(0, REPO_ROOT)

# local repo modules
import sticker_cli

#============================================

def _run_cli(args: list, cwd: str) -> subprocess.CompletedProcess:
	script = os.path.join(REPO_ROOT, "sticker_cli.py")
	env = dict(os.environ)
	env["PYTHONPATH"] = REPO_ROOT + os.pathsep + env.get("PYTHONPATH", "")
	return subprocess.run([sys.executable, script] + args, cwd=cwd, env=env,
		capture_output=True, text=True)

#============================================

def test_output_path_defaults_beside_input(tmp_path) -> None:
	input_file = str(tmp_path / "cat.gif")
	assert sticker_cli.output_path_for(input_file, None, False) == str(tmp_path / "cat.sticker.webp")

#============================================

def test_output_path_into_directory(tmp_path) -> None:
	out_dir = str(tmp_path / "out")
	result = sticker_cli.output_path_for("/media/cat.gif", out_dir, True)
	assert result == os.path.join(out_dir, "cat.sticker.webp")
	assert os.path.isdir(out_dir)

#============================================

def test_output_path_explicit_file(tmp_path) -> None:
	target = str(tmp_path / "custom.webp")
	assert sticker_cli.output_path_for("/media/cat.gif", target, False) == target

#============================================

def test_write_default_config(tmp_path) -> None:
	config_path = str(tmp_path / "stickerlib.yaml")
	proc = _run_cli(["-w", config_path], cwd=str(tmp_path))
	assert proc.returncode == 0, proc.stderr
	with open(config_path, "r", encoding="utf-8") as handle:
		data = yaml.safe_load(handle)
	assert data["stickerlib"] == 1
	assert data["settings"]["limits"]["max_frames"] == 30

#============================================

def test_unsupported_file_passes_through(tmp_path) -> None:
	source = tmp_path / "notes.pdf"
	source.write_bytes(b"%PDF-1.4 fake")
	proc = _run_cli(["-q", "-i", str(source)], cwd=str(tmp_path))
	assert proc.returncode == 0, proc.stderr
	output = tmp_path / "notes.sticker.pdf"
	assert output.read_bytes() == b"%PDF-1.4 fake"
	assert "passed through" in proc.stdout

#============================================

def _wait_for(condition, timeout: float = 15.0) -> bool:
	deadline = time.monotonic() + timeout
	while time.monotonic() < deadline:
		if condition():
			return True
		time.sleep(0.05)
	return False

#============================================

def _pid_alive(pid: int) -> bool:
	try:
		os.kill(pid, 0)
	except ProcessLookupError:
		return False
	return True

#============================================

@pytest.mark.skipif(sys.platform.startswith("win"), reason="needs POSIX signals and /bin/sh")
def test_sigterm_releases_workspace(tmp_path) -> None:
	pid_file = tmp_path / "engine.pid"
	slow_engine = tmp_path / "slow-ffprobe"
	slow_engine.write_text(f"#!/bin/sh\necho $$ > {pid_file}\nexec sleep 20\n")
	slow_engine.chmod(0o755)
	scratch_root = tmp_path / "scratch"
	config_path = tmp_path / "stickerlib.yaml"
	with open(config_path, "w", encoding="utf-8") as handle:
		yaml.safe_dump({
			"stickerlib": 1,
			"settings": {
				"engine": {"ffprobe": str(slow_engine), "probe_timeout": 60},
				"io": {"scratch_root": str(scratch_root)},
			},
		}, handle)
	source = tmp_path / "a.gif"
	source.write_bytes(b"GIF89a")
	script = os.path.join(REPO_ROOT, "sticker_cli.py")
	env = dict(os.environ)
	env["PYTHONPATH"] = REPO_ROOT + os.pathsep + env.get("PYTHONPATH", "")
	proc = subprocess.Popen(
		[sys.executable, script, "-q", "-c", str(config_path), "-i", str(source)],
		cwd=str(tmp_path), env=env,
		stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
	try:
		started = _wait_for(lambda: pid_file.exists() and pid_file.read_text().strip() != "")
		assert started, "slow engine never started"
		assert len(os.listdir(str(scratch_root))) == 1
		engine_pid = int(pid_file.read_text().strip())
		proc.send_signal(signal.SIGTERM)
		returncode = proc.wait(timeout=15)
	finally:
		if proc.poll() is None:
			proc.kill()
			proc.wait()
	assert returncode != 0
	assert os.listdir(str(scratch_root)) == []
	assert _wait_for(lambda: not _pid_alive(engine_pid), timeout=5.0)
