"""Tests for the command line entry point."""

import pytest

from bpelprd.__main__ import main
from bpelprd.core.config import reload_configs


@pytest.fixture(autouse=True)
def default_config(tmp_path_factory, monkeypatch):
    # An empty config directory means built-in defaults
    monkeypatch.setenv("BPELPRD_CONFIG_DIR", str(tmp_path_factory.mktemp("config")))
    monkeypatch.delenv("BPELPRD_LOG_LEVEL", raising=False)
    reload_configs()
    yield
    reload_configs()


class TestExtractCommand:
    def test_extract_project(self, project_dir, capsys):
        assert main(["extract", str(project_dir)]) == 0
        assert (project_dir / "prds" / "OrderProcess.md").is_file()
        assert (project_dir / "summaries" / "OrderProcess.json").is_file()
        out = capsys.readouterr().out
        assert "bpel/OrderProcess.bpel ->" in out

    def test_no_diagram(self, project_dir):
        assert main(["extract", str(project_dir), "--no-diagram"]) == 0
        prd = (project_dir / "prds" / "OrderProcess.md").read_text(encoding="utf-8")
        assert "@startuml" not in prd

    def test_output_directory(self, project_dir, tmp_path_factory):
        out = tmp_path_factory.mktemp("out")
        assert main(["extract", str(project_dir), "-o", str(out)]) == 0
        assert (out / "prds" / "OrderProcess.md").is_file()

    def test_broken_file_fails(self, project_dir, capsys):
        (project_dir / "bpel" / "broken.bpel").write_text("<process", encoding="utf-8")
        assert main(["extract", str(project_dir)]) == 1
        out = capsys.readouterr().out
        assert "FAILED  bpel/broken.bpel" in out
        assert (project_dir / "prds" / "OrderProcess.md").is_file()

    def test_empty_project(self, tmp_path, capsys):
        assert main(["extract", str(tmp_path)]) == 0
        assert "No BPEL files found" in capsys.readouterr().out

    def test_missing_project(self, tmp_path):
        assert main(["extract", str(tmp_path / "missing")]) == 1


class TestVerifyCommand:
    def test_verify_after_extract(self, project_dir, capsys):
        main(["extract", str(project_dir)])
        capsys.readouterr()
        assert main(["verify", str(project_dir)]) == 0
        assert "OK      bpel/OrderProcess.bpel" in capsys.readouterr().out

    def test_verify_missing_prd(self, project_dir, capsys):
        assert main(["verify", str(project_dir)]) == 1
        out = capsys.readouterr().out
        assert "FAILED  bpel/OrderProcess.bpel" in out
        assert "prd_present" in out

    def test_verify_tampered_prd(self, project_dir):
        main(["extract", str(project_dir)])
        prd = project_dir / "prds" / "OrderProcess.md"
        text = prd.read_text(encoding="utf-8")
        prd.write_text(text.replace("ora:getCompositeInstanceId()", "instanceId()"), encoding="utf-8")
        assert main(["verify", str(project_dir)]) == 1


class TestServeCommand:
    @pytest.fixture
    def uvicorn_calls(self, monkeypatch):
        calls = []
        monkeypatch.setattr("uvicorn.run", lambda app, **kwargs: calls.append((app, kwargs)))
        return calls

    def test_host_and_port_from_config(self, uvicorn_calls, capsys):
        assert main(["serve"]) == 0
        ((app, kwargs),) = uvicorn_calls
        assert kwargs == {"host": "0.0.0.0", "port": 9010, "log_level": "info"}
        assert any(route.path == "/api/extract" for route in app.routes)
        assert "http://localhost:9010" in capsys.readouterr().out

    def test_config_file_port(self, uvicorn_calls, monkeypatch, tmp_path):
        (tmp_path / "bpelprd.yaml").write_text("api:\n  host: 127.0.0.1\n  port: 8123\n", encoding="utf-8")
        monkeypatch.setenv("BPELPRD_CONFIG_DIR", str(tmp_path))
        reload_configs()
        assert main(["serve"]) == 0
        assert uvicorn_calls[0][1]["host"] == "127.0.0.1"
        assert uvicorn_calls[0][1]["port"] == 8123

    def test_command_line_overrides(self, uvicorn_calls):
        assert main(["--log-level", "DEBUG", "serve", "--host", "localhost", "--port", "9999"]) == 0
        assert uvicorn_calls[0][1] == {"host": "localhost", "port": 9999, "log_level": "debug"}


class TestArguments:
    def test_command_required(self):
        with pytest.raises(SystemExit):
            main([])

    def test_invalid_log_level(self, project_dir):
        with pytest.raises(SystemExit):
            main(["--log-level", "LOUD", "extract", str(project_dir)])
