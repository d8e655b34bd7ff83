"""
Tests for configuration and the command-line entry point
"""

import logging
import signal
import threading
import pytest
from mutewatch import config as config_module
from mutewatch.cli import install_signal_handlers, run
from mutewatch.config import Config, load_config
from mutewatch.errors import ShutdownRequested
from mutewatch.events import Event, EventType
from mutewatch.listener import SourceListener
from mutewatch.models import ContextState, SourceRecord
from tests.mock_pulse import MockPulseServer, wait_for


@pytest.fixture
def mock_server():
    return MockPulseServer(
        sources={3: SourceRecord(3, "mic0", False)},
        default_source_name="mic0",
    )


@pytest.fixture
def restore_signals():
    saved = {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM)}
    yield
    for sig, handler in saved.items():
        signal.signal(sig, handler)


def when_subscribed(server, action):
    """Run action on a helper thread once the listener's translator is registered"""
    def go():
        wait_for(lambda: server.notification_callback is not None)
        action(server.notification_callback.channel)
    thread = threading.Thread(target=go, daemon=True)
    thread.start()
    return thread


class TestConfig:

    def test_defaults(self, monkeypatch):
        for name in ("MUTEWATCH_CLIENT_NAME", "MUTEWATCH_SERVER", "MUTEWATCH_POLL_INTERVAL",
                     "MUTEWATCH_REFRESH_ON_ADD", "MUTEWATCH_DEBUG"):
            monkeypatch.delenv(name, raising=False)
        cfg = load_config([])
        assert cfg == Config()
        assert cfg.client_name == config_module.CLIENT_NAME

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("MUTEWATCH_CLIENT_NAME", "watcher")
        monkeypatch.setenv("MUTEWATCH_POLL_INTERVAL", "0.25")
        monkeypatch.setenv("MUTEWATCH_REFRESH_ON_ADD", "yes")
        monkeypatch.setenv("MUTEWATCH_DEBUG", "1")
        cfg = load_config([])
        assert cfg.client_name == "watcher"
        assert cfg.poll_interval == 0.25
        assert cfg.refresh_on_add is True
        assert cfg.verbose is True

    def test_flags_override_environment(self, monkeypatch):
        monkeypatch.setenv("MUTEWATCH_SERVER", "unix:/tmp/a")
        cfg = load_config(["-v", "--server", "tcp:host", "--client-name", "x", "--refresh-on-add"])
        assert cfg.verbose is True
        assert cfg.server == "tcp:host"
        assert cfg.client_name == "x"
        assert cfg.refresh_on_add is True

    def test_unknown_flag(self):
        with pytest.raises(SystemExit):
            load_config(["--bogus"])


class TestRun:

    def test_clean_shutdown(self, mock_server):
        when_subscribed(mock_server, lambda channel: channel.put(Event(EventType.SHUTDOWN_REQUESTED)))
        assert run(Config(), server=mock_server, install_signals=False) == 0
        assert mock_server.closed

    def test_connection_failure(self, mock_server, caplog):
        mock_server.connect_outcome = ContextState.FAILED
        assert run(Config(), server=mock_server, install_signals=False) == 1
        assert "context failed" in caplog.text.lower()
        assert mock_server.closed

    def test_initial_load_failure(self, mock_server):
        mock_server.fail_list = True
        assert run(Config(), server=mock_server, install_signals=False) == 1

    def test_subscribes_before_loading(self, mock_server):
        when_subscribed(mock_server, lambda channel: channel.put(Event(EventType.SHUTDOWN_REQUESTED)))
        run(Config(), server=mock_server, install_signals=False)
        names = [call[0] for call in mock_server.call_log]
        assert names.index('subscribe') < names.index('list_sources')

    def test_reports_until_shutdown(self, mock_server, capsys):
        def mute_then_stop(channel):
            wait_for(lambda: mock_server.get_call_count('server_info') == 1)
            mock_server.set_mute(3, True)
            channel.put(Event(EventType.SHUTDOWN_REQUESTED))

        when_subscribed(mock_server, mute_then_stop)
        assert run(Config(), server=mock_server, install_signals=False) == 0
        assert capsys.readouterr().out == "MUTED\n"


class TestSignals:

    def test_signal_during_startup_aborts(self, mock_server, restore_signals):
        listener = SourceListener(mock_server)
        install_signal_handlers(listener)
        with pytest.raises(ShutdownRequested):
            signal.raise_signal(signal.SIGTERM)

    def test_signal_while_running_stops_listener(self, mock_server, restore_signals):
        listener = SourceListener(mock_server)
        install_signal_handlers(listener)
        listener.start()
        try:
            signal.raise_signal(signal.SIGINT)
            listener.wait(timeout=2)
            assert not listener.thread.is_alive()
            assert listener.error is None
        finally:
            listener.stop()

    def test_signal_during_cleanup_is_ignored(self, mock_server, restore_signals, caplog):
        caplog.set_level(logging.INFO)
        close = mock_server.close

        def close_interrupted():
            signal.raise_signal(signal.SIGINT)
            close()

        mock_server.close = close_interrupted
        when_subscribed(mock_server, lambda channel: channel.put(Event(EventType.SHUTDOWN_REQUESTED)))

        assert run(Config(), server=mock_server) == 0
        assert mock_server.closed
        assert "already shutting down" in caplog.text.lower()

    def test_signal_during_cleanup_keeps_error_exit(self, mock_server, restore_signals):
        close = mock_server.close

        def close_interrupted():
            signal.raise_signal(signal.SIGTERM)
            close()

        mock_server.close = close_interrupted
        mock_server.connect_outcome = ContextState.FAILED

        assert run(Config(), server=mock_server) == 1

    def test_handlers_restored_after_run(self, mock_server, restore_signals):
        before = signal.getsignal(signal.SIGTERM)
        mock_server.connect_outcome = ContextState.FAILED
        run(Config(), server=mock_server)
        assert signal.getsignal(signal.SIGTERM) == before

    def test_cleanup_handler_does_not_raise(self, mock_server, restore_signals):
        listener = SourceListener(mock_server)
        handler = install_signal_handlers(listener)
        handler.cleaning_up = True
        signal.raise_signal(signal.SIGINT)
        assert listener.channel.empty()
