import asyncio
import time
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

pyaudio = pytest.importorskip("pyaudio")

from omnibot.audio.devices import PyAudioMicrophone, PyAudioSpeaker
from omnibot.exceptions import CallSetupError

from tests.fakes import eventually


class TestPyAudioMicrophone:
    """Tests for the callback-driven microphone"""

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        """Test the input stream is opened, started and released"""
        with patch('pyaudio.PyAudio') as mock_pyaudio:
            mock_stream = MagicMock()
            mock_pyaudio.return_value.open.return_value = mock_stream
            microphone = PyAudioMicrophone()
            blocks = asyncio.Queue()

            microphone.start(asyncio.get_running_loop(), blocks)

            mock_pyaudio.assert_called_once()
            call_args = mock_pyaudio.return_value.open.call_args[1]
            assert call_args['format'] == pyaudio.paFloat32
            assert call_args['channels'] == 1
            assert call_args['rate'] == 16000
            assert call_args['input'] is True
            assert call_args['frames_per_buffer'] == 4096
            assert call_args['stream_callback'] == microphone._audio_input_callback
            mock_stream.start_stream.assert_called_once()

            microphone.stop()

            mock_stream.stop_stream.assert_called_once()
            mock_stream.close.assert_called_once()
            mock_pyaudio.return_value.terminate.assert_called_once()
            await eventually(lambda: not blocks.empty())
            assert blocks.get_nowait() is None

    @pytest.mark.asyncio
    async def test_callback_hands_block_to_loop(self):
        """Test a captured block reaches the asyncio queue"""
        with patch('pyaudio.PyAudio') as mock_pyaudio:
            mock_pyaudio.return_value.open.return_value = MagicMock()
            microphone = PyAudioMicrophone()
            blocks = asyncio.Queue()
            microphone.start(asyncio.get_running_loop(), blocks)

            samples = np.array([0.5, -0.25, 0.0, 1.0], dtype=np.float32)
            result = microphone._audio_input_callback(samples.tobytes(), 4, None, 0)

            assert result == (None, pyaudio.paContinue)
            await eventually(lambda: not blocks.empty())
            np.testing.assert_array_equal(blocks.get_nowait(), samples)
            microphone.stop()

    @pytest.mark.asyncio
    async def test_open_failure_raises_setup_error(self):
        """Test a missing microphone is reported as a call setup failure"""
        with patch('pyaudio.PyAudio') as mock_pyaudio:
            mock_pyaudio.return_value.open.side_effect = OSError("no input device")
            microphone = PyAudioMicrophone()

            with pytest.raises(CallSetupError, match="Microphone connection failed."):
                microphone.start(asyncio.get_running_loop(), asyncio.Queue())

            mock_pyaudio.return_value.terminate.assert_called_once()
            assert microphone.stream is None


class TestPyAudioSpeaker:
    """Tests for scheduled-buffer output"""

    @staticmethod
    def _chunk(frames=240):
        return np.zeros((1, frames), dtype=np.float32)

    @pytest.mark.asyncio
    async def test_start_opens_output_stream(self):
        """Test the output stream is opened at the playback rate"""
        with patch('pyaudio.PyAudio') as mock_pyaudio:
            mock_stream = MagicMock()
            mock_pyaudio.return_value.open.return_value = mock_stream
            speaker = PyAudioSpeaker()

            speaker.start(asyncio.get_running_loop())

            call_args = mock_pyaudio.return_value.open.call_args[1]
            assert call_args['format'] == pyaudio.paFloat32
            assert call_args['rate'] == 24000
            assert call_args['output'] is True

            await asyncio.to_thread(speaker.close)

            mock_stream.stop_stream.assert_called_once()
            mock_stream.close.assert_called_once()
            mock_pyaudio.return_value.terminate.assert_called_once()

    @pytest.mark.asyncio
    async def test_close_plays_out_every_scheduled_chunk(self):
        """Test close waits for queued audio before releasing the stream"""
        events = []

        def slow_write(data):
            time.sleep(0.02)
            events.append("write")

        with patch('pyaudio.PyAudio') as mock_pyaudio:
            mock_stream = MagicMock()
            mock_stream.write.side_effect = slow_write
            mock_stream.close.side_effect = lambda: events.append("close")
            mock_pyaudio.return_value.open.return_value = mock_stream
            speaker = PyAudioSpeaker()
            speaker.start(asyncio.get_running_loop())

            ended = []
            for i in range(5):
                speaker.schedule(self._chunk(), 24000, 0.0, lambda i=i: ended.append(i))

            await asyncio.to_thread(speaker.close)
            await eventually(lambda: len(ended) == 5)

            assert events == ["write"] * 5 + ["close"]
            assert ended == [0, 1, 2, 3, 4]
            assert speaker.stream is None

    @pytest.mark.asyncio
    async def test_chunk_waits_for_its_start_time(self):
        """Test a chunk is not written before its scheduled start"""
        written_at = []

        with patch('pyaudio.PyAudio') as mock_pyaudio:
            mock_stream = MagicMock()
            mock_pyaudio.return_value.open.return_value = mock_stream
            speaker = PyAudioSpeaker()
            speaker.start(asyncio.get_running_loop())
            mock_stream.write.side_effect = lambda data: written_at.append(speaker.current_time)

            start_time = speaker.current_time + 0.1
            speaker.schedule(self._chunk(), 24000, start_time, lambda: None)
            await asyncio.to_thread(speaker.close)

            assert len(written_at) == 1
            assert written_at[0] >= start_time

    @pytest.mark.asyncio
    async def test_stopped_chunk_is_skipped(self):
        """Test a stopped source is not written but still reports completion"""
        with patch('pyaudio.PyAudio') as mock_pyaudio:
            mock_stream = MagicMock()
            mock_pyaudio.return_value.open.return_value = mock_stream
            speaker = PyAudioSpeaker()
            speaker.start(asyncio.get_running_loop())

            ended = []
            source = speaker.schedule(self._chunk(), 24000, speaker.current_time + 0.05, lambda: ended.append("done"))
            speaker.stop(source)
            await asyncio.to_thread(speaker.close)
            await eventually(lambda: ended == ["done"])

            mock_stream.write.assert_not_called()

    @pytest.mark.asyncio
    async def test_open_failure_raises_setup_error(self):
        """Test a missing output device is reported as a call setup failure"""
        with patch('pyaudio.PyAudio') as mock_pyaudio:
            mock_pyaudio.return_value.open.side_effect = OSError("no output device")
            speaker = PyAudioSpeaker()

            with pytest.raises(CallSetupError, match="Speaker could not be opened."):
                speaker.start(asyncio.get_running_loop())

            mock_pyaudio.return_value.terminate.assert_called_once()

    def test_schedule_rejects_other_sample_rates(self):
        speaker = PyAudioSpeaker()

        with pytest.raises(ValueError):
            speaker.schedule(self._chunk(), 16000, 0.0, lambda: None)
