#!/usr/bin/env python3

"""
YAML settings for the sticker pipeline.

A config file carries a header key so unrelated YAML is rejected:

	stickerlib: 1
	settings:
	  sticker: {name: "My Pack", author: "me"}
	  io: {scratch_root: /var/tmp/stickers}

Missing keys fall back to default_config().
"""

# Standard Library
import os

# PIP3 modules
import yaml

# local repo modules
from stickerlib.core.errors import ConfigError
from stickerlib.core.workspace import default_scratch_root

#============================================

TOOL_CONFIG_HEADER_KEY = "stickerlib"
TOOL_CONFIG_HEADER_VALUE = 1

ANIMATED_CATEGORIES = ["🎬", "🔄"]
STATIC_CATEGORIES = ["🖼️"]

#============================================

def default_config() -> dict:
	"""
	Build the default config dictionary.

	Returns:
		dict: Default config.
	"""
	return {
		TOOL_CONFIG_HEADER_KEY: TOOL_CONFIG_HEADER_VALUE,
		"settings": {
			"sticker": {
				"name": "stickerlib",
				"author": "stickerlib",
				"categories": {
					"animated": list(ANIMATED_CATEGORIES),
					"static": list(STATIC_CATEGORIES),
				},
				"embed_metadata": True,
			},
			"engine": {
				"ffmpeg": "ffmpeg",
				"ffprobe": "ffprobe",
				"probe_timeout": 15.0,
				"extract_timeout": 30.0,
				"encode_timeout": 30.0,
			},
			"limits": {
				"max_frames": 30,
				"canvas": [512, 512],
				"quality": 100,
				"default_fps": 30.0,
			},
			"io": {
				"scratch_root": None,
				"normalize_static_images": True,
			},
		},
	}

#============================================

def write_config_file(config_path: str, config: dict) -> None:
	"""
	Write a config file to disk.

	Args:
		config_path: Output file path.
		config: Config dictionary.
	"""
	text = yaml.safe_dump(config, sort_keys=False, allow_unicode=True)
	os.makedirs(os.path.dirname(config_path) or ".", exist_ok=True)
	with open(config_path, "w", encoding="utf-8") as handle:
		handle.write(text)
	return

#============================================

def load_config(config_path: str) -> dict:
	"""
	Load a config file from disk.

	Args:
		config_path: Config file path.

	Returns:
		dict: Parsed config mapping.
	"""
	with open(config_path, "r", encoding="utf-8") as handle:
		data = yaml.safe_load(handle)
	if not isinstance(data, dict):
		raise ConfigError("config file must be a mapping")
	if data.get(TOOL_CONFIG_HEADER_KEY) != TOOL_CONFIG_HEADER_VALUE:
		raise ConfigError(
			f"config file must set {TOOL_CONFIG_HEADER_KEY}: {TOOL_CONFIG_HEADER_VALUE}")
	return data

#============================================

def coerce_float(value, config_path: str, key_path: str) -> float:
	if isinstance(value, bool):
		raise ConfigError(f"config {config_path}: {key_path} must be a number")
	if isinstance(value, (int, float)):
		return float(value)
	if isinstance(value, str):
		try:
			return float(value)
		except ValueError:
			pass
	raise ConfigError(f"config {config_path}: {key_path} must be a number")

#============================================

def coerce_int(value, config_path: str, key_path: str) -> int:
	if isinstance(value, bool):
		raise ConfigError(f"config {config_path}: {key_path} must be an integer")
	if isinstance(value, int):
		return value
	if isinstance(value, float):
		return int(value)
	if isinstance(value, str):
		try:
			return int(float(value))
		except ValueError:
			pass
	raise ConfigError(f"config {config_path}: {key_path} must be an integer")

#============================================

def coerce_str(value, config_path: str, key_path: str) -> str:
	if isinstance(value, str):
		return value
	raise ConfigError(f"config {config_path}: {key_path} must be a string")

#============================================

def coerce_bool(value, config_path: str, key_path: str) -> bool:
	if isinstance(value, bool):
		return value
	if isinstance(value, str) and value.strip().lower() in ("true", "yes", "on", "1"):
		return True
	if isinstance(value, str) and value.strip().lower() in ("false", "no", "off", "0"):
		return False
	raise ConfigError(f"config {config_path}: {key_path} must be true or false")

#============================================

def coerce_str_list(value, config_path: str, key_path: str) -> list:
	if isinstance(value, str):
		return [value]
	if isinstance(value, (list, tuple)):
		return [coerce_str(item, config_path, key_path) for item in value]
	raise ConfigError(f"config {config_path}: {key_path} must be a list of strings")

#============================================

def _section(mapping: dict, key: str, config_path: str, key_path: str) -> dict:
	value = mapping.get(key)
	if value is None:
		return {}
	if not isinstance(value, dict):
		raise ConfigError(f"config {config_path}: {key_path} must be a mapping")
	return value

#============================================

def build_settings(config: dict, config_path: str = "<code defaults>") -> dict:
	"""
	Normalize settings with defaults.

	Args:
		config: Raw config mapping.
		config_path: Config file path, used in error messages.

	Returns:
		dict: Normalized settings.
	"""
	defaults = default_config()["settings"]
	overrides = {}
	if isinstance(config, dict):
		overrides = _section(config, "settings", config_path, "settings")
	sticker = _section(overrides, "sticker", config_path, "settings.sticker")
	categories = _section(sticker, "categories", config_path,
		"settings.sticker.categories")
	engine = _section(overrides, "engine", config_path, "settings.engine")
	limits = _section(overrides, "limits", config_path, "settings.limits")
	io = _section(overrides, "io", config_path, "settings.io")
	d_sticker = defaults["sticker"]
	d_engine = defaults["engine"]
	d_limits = defaults["limits"]
	d_io = defaults["io"]
	canvas = limits.get("canvas", d_limits["canvas"])
	if not isinstance(canvas, (list, tuple)) or len(canvas) != 2:
		raise ConfigError(f"config {config_path}: settings.limits.canvas must be [width, height]")
	scratch_root = io.get("scratch_root", d_io["scratch_root"])
	if scratch_root is None:
		scratch_root = default_scratch_root()
	settings = {
		"sticker": {
			"name": coerce_str(sticker.get("name", d_sticker["name"]),
				config_path, "settings.sticker.name"),
			"author": coerce_str(sticker.get("author", d_sticker["author"]),
				config_path, "settings.sticker.author"),
			"categories": {
				"animated": coerce_str_list(
					categories.get("animated", d_sticker["categories"]["animated"]),
					config_path, "settings.sticker.categories.animated"),
				"static": coerce_str_list(
					categories.get("static", d_sticker["categories"]["static"]),
					config_path, "settings.sticker.categories.static"),
			},
			"embed_metadata": coerce_bool(
				sticker.get("embed_metadata", d_sticker["embed_metadata"]),
				config_path, "settings.sticker.embed_metadata"),
		},
		"engine": {
			"ffmpeg": coerce_str(engine.get("ffmpeg", d_engine["ffmpeg"]),
				config_path, "settings.engine.ffmpeg"),
			"ffprobe": coerce_str(engine.get("ffprobe", d_engine["ffprobe"]),
				config_path, "settings.engine.ffprobe"),
			"probe_timeout": coerce_float(
				engine.get("probe_timeout", d_engine["probe_timeout"]),
				config_path, "settings.engine.probe_timeout"),
			"extract_timeout": coerce_float(
				engine.get("extract_timeout", d_engine["extract_timeout"]),
				config_path, "settings.engine.extract_timeout"),
			"encode_timeout": coerce_float(
				engine.get("encode_timeout", d_engine["encode_timeout"]),
				config_path, "settings.engine.encode_timeout"),
		},
		"limits": {
			"max_frames": coerce_int(limits.get("max_frames", d_limits["max_frames"]),
				config_path, "settings.limits.max_frames"),
			"width": coerce_int(canvas[0], config_path, "settings.limits.canvas[0]"),
			"height": coerce_int(canvas[1], config_path, "settings.limits.canvas[1]"),
			"quality": coerce_int(limits.get("quality", d_limits["quality"]),
				config_path, "settings.limits.quality"),
			"default_fps": coerce_float(
				limits.get("default_fps", d_limits["default_fps"]),
				config_path, "settings.limits.default_fps"),
		},
		"io": {
			"scratch_root": coerce_str(scratch_root, config_path,
				"settings.io.scratch_root"),
			"normalize_static_images": coerce_bool(
				io.get("normalize_static_images", d_io["normalize_static_images"]),
				config_path, "settings.io.normalize_static_images"),
		},
	}
	_validate_settings(settings, config_path)
	return settings

#============================================

def _validate_settings(settings: dict, config_path: str) -> None:
	engine = settings["engine"]
	limits = settings["limits"]
	for key in ("probe_timeout", "extract_timeout", "encode_timeout"):
		if engine[key] <= 0:
			raise ConfigError(f"config {config_path}: settings.engine.{key} must be positive")
	if limits["max_frames"] < 1:
		raise ConfigError(f"config {config_path}: settings.limits.max_frames must be >= 1")
	if limits["width"] < 1 or limits["height"] < 1:
		raise ConfigError(f"config {config_path}: settings.limits.canvas must be positive")
	if not 0 <= limits["quality"] <= 100:
		raise ConfigError(f"config {config_path}: settings.limits.quality must be 0..100")
	if limits["default_fps"] <= 0:
		raise ConfigError(f"config {config_path}: settings.limits.default_fps must be positive")
	return

#============================================

def load_settings(config_path: str = None) -> dict:
	"""
	Load and normalize settings, using code defaults when no path is given.
	"""
	if config_path is None:
		return build_settings(default_config())
	if not os.path.exists(config_path):
		raise ConfigError(f"config file not found: {config_path}")
	return build_settings(load_config(config_path), config_path)
