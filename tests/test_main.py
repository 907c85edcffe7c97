"""Tests for the reassembler command line."""

import json

import pytest

from reassembler import main as cli
from reassembler.errors import UploadPartError
from reassembler.models.registry import PutImageResult, Repository, TransferResult


def _json_output(out: str) -> dict:
    return json.loads(out[out.index("{\n"):])


class FakeAssembleOperation:
    instances = []

    def __init__(self, config, cancel_event=None, show_progress=True):
        self.config = config
        self.show_progress = show_progress
        self.kwargs = None
        FakeAssembleOperation.instances.append(self)

    def assemble(self, **kwargs):
        self.kwargs = kwargs
        if kwargs['repository_name'] == 'broken':
            raise UploadPartError("error uploading part 1 of layer sha256:aa", "sha256:aa", 1)
        image = PutImageResult("1.0", "team/app", "sha256:" + "d" * 64, "123456789012")
        return {
            'status': 'Success',
            'bucket': kwargs['bucket'],
            'prefix': kwargs['prefix'],
            'tag': '1.0',
            'downloaded': 4,
            'transfer': TransferResult(image, Repository("team/app", "123456789012"), True)
        }


@pytest.fixture(autouse=True)
def patched(monkeypatch):
    FakeAssembleOperation.instances.clear()
    monkeypatch.setattr(cli, "AssembleOperation", FakeAssembleOperation)
    monkeypatch.setattr(cli, "setup_logging", lambda level, log_file=None: None)
    monkeypatch.delenv("REASSEMBLER_CONFIG", raising=False)


class TestMain:
    def test_assemble_success(self, capsys) -> None:
        cli.main(["-b", "exports", "assemble", "-p", "images/app/1.0", "-r", "team/app",
                  "-l", "/data", "--rm", "--no-progress"])

        output = _json_output(capsys.readouterr().out)
        assert output["Status"] == "Success"
        assert output["ObjectsDownloaded"] == 4
        assert output["Image"]["ImageTag"] == "1.0"
        assert output["Image"]["RepositoryCreated"] is True

        op = FakeAssembleOperation.instances[0]
        assert op.config.local_path == "/data"
        assert not op.show_progress
        assert op.kwargs["remove"] is True
        assert op.kwargs["prefix"] == "images/app/1.0"
        assert op.kwargs["dry_run"] is False

    def test_role_options_reach_config(self, capsys) -> None:
        cli.main(["-b", "exports", "a", "-p", "p/1", "-r", "team/app",
                  "-P", "arn:aws:iam::123456789012:role/put", "--put-role-external-id", "ext"])
        config = FakeAssembleOperation.instances[0].config
        assert config.put_role_to_assume == "arn:aws:iam::123456789012:role/put"
        assert config.put_role_external_id == "ext"

    def test_failure_exits_non_zero(self, capsys) -> None:
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["-b", "exports", "assemble", "-p", "p/1", "-r", "broken"])

        assert exc_info.value.code == 1
        output = _json_output(capsys.readouterr().out)
        assert output["Status"] == "Failed"
        assert output["ErrorType"] == "UploadPartError"

    def test_malformed_config_reports_json_error(self, capsys, tmp_path) -> None:
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("local_path: \"unterminated\n")

        with pytest.raises(SystemExit) as exc_info:
            cli.main(["-b", "exports", "--config", str(config_file), "assemble", "-p", "p/1", "-r", "team/app"])

        assert exc_info.value.code == 1
        output = _json_output(capsys.readouterr().out)
        assert output["Status"] == "Failed"
        assert output["ErrorType"] == "ValueError"
        assert "not valid YAML" in output["Error"]
        assert FakeAssembleOperation.instances == []

    def test_bucket_is_required(self) -> None:
        with pytest.raises(SystemExit):
            cli.main(["assemble", "-p", "p/1"])

    def test_no_command_prints_help(self, capsys) -> None:
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["-b", "exports"])
        assert exc_info.value.code == 1
        assert "assemble" in capsys.readouterr().out
