import pytest

from plot_archiver import dependencies


def test_event_bus_is_singleton():
    assert dependencies.get_event_bus() is dependencies.get_event_bus()


def test_plot_scanner_requires_archiver():
    with pytest.raises(RuntimeError):
        dependencies.get_plot_scanner()


@pytest.mark.asyncio
async def test_archiver_and_scanner_wiring(monkeypatch, tmp_path):
    destination = tmp_path / "dest"
    destination.mkdir()
    monkeypatch.setenv("SOURCE_DIRECTORIES", f'["{tmp_path / "source"}"]')
    monkeypatch.setenv("DESTINATION_DIRECTORIES", f'["{destination}"]')

    archiver = await dependencies.get_archiver()
    scanner = dependencies.get_plot_scanner()

    assert archiver is await dependencies.get_archiver()
    assert [d.location for d in archiver.destinations] == [str(destination)]
    assert scanner.config.source_directories == [str(tmp_path / "source")]
