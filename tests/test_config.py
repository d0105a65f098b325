#!/usr/bin/env python3
"""
Tests for configuration loading
"""

import unittest
import sys
import os
import tempfile
from pathlib import Path
from unittest.mock import patch

# Add the project root to the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from ai.exceptions.imagen_exceptions import StartupError
from config import (
    DEFAULT_BASE_URL,
    ServerConfig,
    ensure_dir,
    ensure_directories,
    load_config,
    resolve_data_dir,
    resolve_logging,
)


class TestLoadConfig(unittest.TestCase):
    """Test cases for configuration loading"""

    def env(self, **overrides):
        environ = {"GEMINI_API_KEY": "test-key", "IMAGEN_DATA_DIR": "/tmp/imagen-test"}
        environ.update(overrides)
        return environ

    def test_defaults(self):
        config = load_config(self.env())

        self.assertEqual(config.api_key, "test-key")
        self.assertEqual(config.base_url, DEFAULT_BASE_URL)
        self.assertEqual(config.advertised_host, "127.0.0.1")
        self.assertEqual(config.listen_addr, "127.0.0.1")
        self.assertEqual(config.port, 9981)
        self.assertIsNone(config.request_timeout)

    def test_overrides(self):
        config = load_config(self.env(
            BASE_URL="http://localhost:8080",
            IMAGE_RESOURCE_SERVER_ADDR="images.example.com",
            SERVER_LISTEN_ADDR="0.0.0.0",
            SERVER_PORT="8000",
            LOG_LEVEL="debug",
            IMAGEN_REQUEST_TIMEOUT="30",
        ))

        self.assertEqual(config.base_url, "http://localhost:8080")
        self.assertEqual(config.advertised_host, "images.example.com")
        self.assertEqual(config.listen_addr, "0.0.0.0")
        self.assertEqual(config.port, 8000)
        self.assertEqual(config.request_timeout, 30.0)

    def test_missing_api_key(self):
        environ = self.env()
        del environ["GEMINI_API_KEY"]

        with self.assertRaises(StartupError) as ctx:
            load_config(environ)
        self.assertIn("GEMINI_API_KEY", str(ctx.exception))

    def test_blank_api_key(self):
        with self.assertRaises(StartupError):
            load_config(self.env(GEMINI_API_KEY="   "))

    def test_invalid_port(self):
        for port in ["abc", "99.5", "70000", "0"]:
            with self.subTest(port=port):
                with self.assertRaises(StartupError) as ctx:
                    load_config(self.env(SERVER_PORT=port))
                self.assertIn("SERVER_PORT", str(ctx.exception))

    def test_directory_layout(self):
        config = load_config(self.env())

        self.assertEqual(config.data_dir, Path("/tmp/imagen-test"))
        self.assertEqual(config.log_dir, Path("/tmp/imagen-test/logs"))
        self.assertEqual(config.resources_dir, Path("/tmp/imagen-test/artifacts"))
        self.assertEqual(config.images_dir, Path("/tmp/imagen-test/artifacts/images"))

    def test_logging_settings(self):
        self.assertEqual(
            resolve_logging(self.env()),
            ("INFO", Path("/tmp/imagen-test/logs/imagen3-mcp.log")),
        )
        level, log_file = resolve_logging(self.env(LOG_LEVEL="debug"))

        self.assertEqual(level, "DEBUG")
        self.assertEqual(log_file.parent, load_config(self.env()).log_dir)

    def test_platform_data_dir_used_without_override(self):
        with patch("config.user_data_dir", return_value="/home/user/.local/share/imagen3-mcp") as mock_dir:
            data_dir = resolve_data_dir({})

        mock_dir.assert_called_once_with("imagen3-mcp", appauthor=False)
        self.assertEqual(data_dir, Path("/home/user/.local/share/imagen3-mcp"))


class TestEnsureDirectories(unittest.TestCase):
    """Test cases for startup directory creation"""

    def test_creates_and_tolerates_existing(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            config = ServerConfig(data_dir=Path(temp_dir) / "data", api_key="k")

            ensure_directories(config)
            ensure_directories(config)

            self.assertTrue(config.log_dir.is_dir())
            self.assertTrue(config.images_dir.is_dir())

    def test_creation_failure_is_startup_error(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            blocker = Path(temp_dir) / "file"
            blocker.write_text("not a directory")

            with self.assertRaises(StartupError) as ctx:
                ensure_dir(blocker / "images", "images")
            self.assertIn("images", str(ctx.exception))


if __name__ == '__main__':
    unittest.main()
