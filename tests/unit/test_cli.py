"""
Unit Tests for the tutor-chat CLI
"""

import json

import pytest

from cli.main import main


class TestCli:

    def test_policies_prints_table(self, capsys):
        assert main(["policies"]) == 0

        table = json.loads(capsys.readouterr().out)
        assert set(table) == {"help", "learn_more", "practice", "quiz_failed", "summary", "general"}
        assert table["practice"]["auto_continue"]["enabled"] is False
        assert table["summary"]["max_output_tokens"] == 1500
        assert table["general"]["auto_continue"]["continuation_max_tokens"] == 1000

    def test_prompt_prints_assembled_prompt(self, capsys):
        code = main([
            "prompt",
            "What is inverse kinematics?",
            "--topic",
            "robot-arm-movement",
            "--context",
            "help",
            "--learner-name",
            "Ada",
        ])

        out = capsys.readouterr().out
        assert code == 0
        assert "Current Student Question: What is inverse kinematics?" in out
        assert "- Student Name: Ada" in out

    def test_normalize_file(self, tmp_path, capsys):
        src = tmp_path / "reply.md"
        src.write_text("Steps\n* first\n* second\n", encoding="utf-8")

        assert main(["normalize", str(src)]) == 0
        assert capsys.readouterr().out == "Steps\n\n- first\n- second\n"

    def test_normalize_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            main(["normalize", str(tmp_path / "missing.md")])

    def test_unknown_context_rejected(self):
        with pytest.raises(SystemExit):
            main(["prompt", "hi", "--topic", "t", "--context", "bogus"])
