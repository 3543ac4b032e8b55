"""Tests for the command line entrypoints."""

import argparse
import json

import pytest

import main


@pytest.fixture
def feed_file(tmp_path, sample_feed_text):
    path = tmp_path / "members.csv"
    path.write_text(sample_feed_text, encoding="utf-8")
    return path


class TestSyncCommand:
    """Tests for `main.py sync`."""

    def test_json_output(self, feed_file, capsys):
        exit_code = main.cmd_sync(argparse.Namespace(file=str(feed_file), json=True))

        assert exit_code == 0
        data = json.loads(capsys.readouterr().out)
        assert [m["memberId"] for m in data["members"]] == ["M001", "USR002", "M003"]
        assert data["summary"]["totalMembers"] == 3

    def test_table_output(self, feed_file, capsys):
        exit_code = main.cmd_sync(argparse.Namespace(file=str(feed_file), json=False))

        assert exit_code == 0
        out = capsys.readouterr().out
        assert "Members: 3" in out
        assert "Vikram Shah" in out
        assert "Bills synthesized: 3" in out


class TestCheckEmailCommand:
    """Tests for `main.py check-email`."""

    def test_registered(self, feed_file, capsys):
        exit_code = main.cmd_check_email(argparse.Namespace(email="ASHA@example.com", file=str(feed_file)))

        assert exit_code == 0
        assert json.loads(capsys.readouterr().out)["memberId"] == "M001"

    def test_not_registered(self, feed_file, capsys):
        exit_code = main.cmd_check_email(argparse.Namespace(email="nobody@example.com", file=str(feed_file)))

        assert exit_code == 1
        assert "not on the member sheet" in capsys.readouterr().out

    def test_invalid_format(self, feed_file):
        assert main.cmd_check_email(argparse.Namespace(email="nope", file=str(feed_file))) == 1


class TestCreateManagerCommand:
    """Tests for `main.py create-manager`."""

    def test_creates_manager(self, clean_db, capsys):
        from api.database import ProfileStore

        args = argparse.Namespace(email="Chair@Example.com", password="password123", name="Chair")
        assert main.cmd_create_manager(args) == 0

        profiles = ProfileStore.list_profiles()
        assert [(p.email, p.role) for p in profiles] == [("chair@example.com", "manager")]

    def test_duplicate(self, clean_db, capsys):
        args = argparse.Namespace(email="chair@example.com", password="password123", name=None)
        assert main.cmd_create_manager(args) == 0
        assert main.cmd_create_manager(args) == 1

    def test_short_password(self, clean_db):
        args = argparse.Namespace(email="chair@example.com", password="123", name=None)
        assert main.cmd_create_manager(args) == 1
