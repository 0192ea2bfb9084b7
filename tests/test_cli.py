"""
Tests for the operator CLI.
"""

from gpat import cli
from gpat.models import Kind
from gpat.store import RecordStore
from tests.fixtures import COUNTRY, add_actor


class TestCli:
    def test_help(self, capsys):
        cli.main([])
        assert "init-db" in capsys.readouterr().out

    def test_unknown_command(self, capsys):
        cli.main(["frobnicate"])
        assert "Unknown command: frobnicate" in capsys.readouterr().out

    def test_init_db_creates_schema(self, tmp_path, capsys):
        path = tmp_path / "cli.db"

        cli.main(["init-db", str(path)])

        store = RecordStore(path)
        try:
            assert store.count(Kind.MEASURE) == 0
        finally:
            store.close()
        assert "Database ready" in capsys.readouterr().out

    def test_types(self, capsys):
        cli.main(["types"])
        out = capsys.readouterr().out
        assert "Statement" in out
        assert "Group" in out

    def test_public_countries(self, tmp_path, monkeypatch, capsys):
        path = tmp_path / "public.db"
        monkeypatch.setenv("GPAT_DB", str(path))
        cli.main(["init-db"])
        store = RecordStore(path)
        add_actor(store, actortype_id=COUNTRY, title="France", code="FR", public_api=1)
        store.close()

        cli.main(["public", "countries"])

        out = capsys.readouterr().out
        assert "FR" in out
        assert "PUBLIC COUNTRIES (1" in out

    def test_jobs_empty(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setenv("GPAT_DB", str(tmp_path / "jobs.db"))
        cli.main(["init-db"])

        cli.main(["jobs"])

        assert "No pending jobs." in capsys.readouterr().out

