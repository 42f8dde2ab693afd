"""Tests for the command-line interface."""

import json
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from femdown.cli import cli
from femdown.exceptions import LoginAbortedError


class TestCLI:
    """Test basic CLI functionality."""

    def setup_method(self):
        """Set up test fixtures."""
        self.runner = CliRunner()
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        self.config_file = self.root / "config.json"
        self.config_file.write_text(json.dumps({'cache_directory': str(self.root / "cache")}))
        self.output_dir = self.root / "courses"

        self.logging_patch = patch('femdown.cli.setup_comprehensive_logging')
        self.logging_patch.start()

    def teardown_method(self):
        self.logging_patch.stop()
        self.temp_dir.cleanup()

    def invoke(self, *args, **kwargs):
        return self.runner.invoke(cli, ['--config-file', str(self.config_file), *args], **kwargs)

    def test_cli_help(self):
        result = self.runner.invoke(cli, ['--help'])
        assert result.exit_code == 0
        assert 'Download Frontend Masters courses' in result.output
        assert 'download' in result.output
        assert 'config' in result.output
        assert 'logout' in result.output

    def test_cli_version(self):
        result = self.runner.invoke(cli, ['--version'])
        assert result.exit_code == 0
        assert '1.0.0' in result.output

    def test_download_help(self):
        result = self.invoke('download', '--help')
        assert result.exit_code == 0
        assert '--all' in result.output
        assert '--format' in result.output
        assert '--resolution' in result.output
        assert '--concurrent' in result.output
        assert '--fresh-login' in result.output

    def test_invalid_course_id(self):
        result = self.invoke('download', 'Not A Course!', '-f', 'mp4', '-r', 'high', '-d', str(self.output_dir))
        assert result.exit_code == 1
        assert 'Course id is invalid' in result.output

    @pytest.mark.parametrize("args", [
        ['-r', '4k'],
        ['-f', 'mkv'],
        ['-c', '0'],
    ])
    def test_invalid_option_values(self, args):
        result = self.invoke('download', 'react-v8', *args)
        assert result.exit_code == 2

    @patch('femdown.cli.run_download', new_callable=AsyncMock)
    def test_download(self, mock_run):
        result = self.invoke(
            'download', 'react-v8', 'https://frontendmasters.com/courses/typescript-v4/',
            '-f', 'webm', '-r', 'low', '-d', str(self.output_dir), '-c', '3'
        )

        assert result.exit_code == 0, result.output
        assert 'Download Complete!' in result.output
        assert self.output_dir.is_dir()

        _, course_ids, all_courses, options, fresh_login = mock_run.call_args[0]
        assert course_ids == ['react-v8', 'typescript-v4']
        assert all_courses is False
        assert options.video_format == 'webm'
        assert options.resolution == 360
        assert options.concurrent_downloads == 3
        assert options.output_path == self.output_dir.resolve()
        assert fresh_login is False

    @patch('femdown.cli.run_download', new_callable=AsyncMock)
    def test_download_all_with_fresh_login(self, mock_run):
        result = self.invoke('download', '--all', '--fresh-login', '-f', 'mp4', '-r', 'medium',
                             '-d', str(self.output_dir))

        assert result.exit_code == 0, result.output
        _, course_ids, all_courses, options, fresh_login = mock_run.call_args[0]
        assert course_ids == []
        assert all_courses is True
        assert options.concurrent_downloads == 6
        assert fresh_login is True

    @patch('femdown.cli.run_download', new_callable=AsyncMock)
    def test_download_prompts(self, mock_run):
        user_input = f"n\nreact-v8\nwebm\nhigh\n{self.output_dir}\n"
        result = self.invoke('download', input=user_input)

        assert result.exit_code == 0, result.output
        assert 'Do you want to download all courses?' in result.output
        _, course_ids, all_courses, options, _ = mock_run.call_args[0]
        assert course_ids == ['react-v8']
        assert all_courses is False
        assert options.video_format == 'webm'
        assert options.resolution == 1080

    @patch('femdown.cli.run_download', new_callable=AsyncMock)
    def test_download_failure_exits_nonzero(self, mock_run):
        mock_run.side_effect = LoginAbortedError("Left site.")

        result = self.invoke('download', 'react-v8', '-f', 'mp4', '-r', 'high', '-d', str(self.output_dir))

        assert result.exit_code == 1
        assert 'Left site.' in result.output
        assert 'Download Complete!' not in result.output

    def test_output_path_is_a_file(self):
        not_a_dir = self.root / "file.txt"
        not_a_dir.write_text("x")

        result = self.invoke('download', 'react-v8', '-f', 'mp4', '-r', 'high', '-d', str(not_a_dir))

        assert result.exit_code == 1
        assert 'Not a directory' in result.output

    def test_config_command(self):
        result = self.invoke('config')
        assert result.exit_code == 0
        assert 'Current Configuration' in result.output
        assert 'Max Concurrent Downloads' in result.output

    def test_invalid_config_file(self):
        self.config_file.write_text("{broken")
        result = self.invoke('config')
        assert result.exit_code == 1
        assert 'Configuration error' in result.output

    @patch('femdown.config.keyring')
    def test_logout(self, mock_keyring):
        session_file = self.root / "cache" / "session.json"
        session_file.parent.mkdir(parents=True)
        session_file.write_text("{}")

        result = self.invoke('logout')

        assert result.exit_code == 0
        assert 'Stored session removed' in result.output
        assert not session_file.exists()
        mock_keyring.delete_password.assert_called_once()
