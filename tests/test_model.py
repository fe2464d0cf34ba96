import pytest

from mountprep.errors import InvalidLabelError, InvalidRequestError
from mountprep.model import MountRecord, ProvisioningRequest, SyncMode, TemplateSpec, validate_label


@pytest.mark.parametrize("label", ["tmp", "tmp-space", "a", "A1-b2", "0"])
def test_validate_label_accepts(label):
    assert validate_label(label) == label


@pytest.mark.parametrize("label", ["", "-tmp", "tmp-", "tmp space", "tmp/space", "tmp_space", "tmp\n"])
def test_validate_label_rejects(label):
    with pytest.raises(InvalidLabelError):
        validate_label(label)


def test_request_normalizes_devices_to_tuple():
    request = ProvisioningRequest("/tmp", ["/dev/xvdb", "/dev/xvdc"])
    assert request.devices == ("/dev/xvdb", "/dev/xvdc")
    assert not request.explicit_label
    assert hash(request)


def test_request_validation():
    with pytest.raises(InvalidRequestError):
        ProvisioningRequest("tmp", ("/dev/xvdb",))
    with pytest.raises(InvalidRequestError):
        ProvisioningRequest("/tmp", ())
    with pytest.raises(InvalidLabelError):
        ProvisioningRequest("/tmp", ("/dev/xvdb",), label="-bad")


def test_template_defaults_to_recursive():
    assert TemplateSpec("/var/log").mode is SyncMode.RECURSIVE


def test_mount_record_render():
    record = MountRecord(label="mountprep /tmp /dev/xvdb", device="/dev/xvdb", mountpoint="/tmp")
    assert record.render() == (
        "# mountprep /tmp /dev/xvdb\n"
        "/dev/xvdb /tmp auto defaults,nobootwait,noatime 0 2\n"
    )
