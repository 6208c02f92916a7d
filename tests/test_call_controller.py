import asyncio
import base64
import json

import numpy as np
import pytest

from omnibot.call import CallController, parse_args
from omnibot.exceptions import CallSetupError
from omnibot.models.messages import (
    ErrorMessage,
    ServerMessage,
    SessionClosedMessage,
    SessionOpenedMessage,
)
from omnibot.models.session import SessionState


class FakeChannel:
    def __init__(self, messages=(), connect_error=None):
        self.incoming = list(messages)
        self.connect_error = connect_error
        self.is_open = False
        self.sent = []
        self.close_count = 0

    async def connect(self):
        if self.connect_error is not None:
            raise self.connect_error
        self.is_open = True

    async def send(self, text):
        self.sent.append(json.loads(text))

    async def messages(self):
        for message in self.incoming:
            yield message

    async def close(self):
        self.is_open = False
        self.close_count += 1


class FakeMicrophone:
    def __init__(self, blocks=(), error=None):
        self.blocks = list(blocks)
        self.error = error
        self.queue = None
        self.stopped = False

    def start(self, loop, queue):
        if self.error is not None:
            raise self.error
        self.queue = queue
        for block in self.blocks:
            queue.put_nowait(block)

    def stop(self):
        self.stopped = True
        self.queue.put_nowait(None)


class FakeSpeaker:
    def __init__(self):
        self.current_time = 0.0
        self.scheduled = []
        self.started = False
        self.closed = False

    def start(self, loop):
        self.started = True

    def schedule(self, buffer, sample_rate, start_time, on_ended):
        self.scheduled.append((buffer.shape, sample_rate, start_time))
        return object()

    def stop(self, source):
        pass

    def close(self):
        self.closed = True


def _audio_message(frames):
    pcm = np.zeros(frames, dtype="<i2").tobytes()
    return ServerMessage(data={"serverContent": {"modelTurn": {"parts": [{"inlineData": {
        "data": base64.b64encode(pcm).decode("ascii"), "mimeType": "audio/pcm;rate=24000",
    }}]}}})


@pytest.mark.asyncio
async def test_full_call():
    channel = FakeChannel([
        SessionOpenedMessage(),
        _audio_message(2400),
        _audio_message(1200),
        SessionClosedMessage(),
    ])
    microphone = FakeMicrophone(blocks=[np.zeros(4096, dtype=np.float32)])
    speaker = FakeSpeaker()
    controller = CallController(channel, microphone, speaker)

    await asyncio.wait_for(controller.run(), timeout=1)

    assert controller.state is SessionState.CLOSED
    assert not controller.active
    assert [entry[2] for entry in speaker.scheduled] == pytest.approx([0.0, 0.1])
    assert len(channel.sent) == 1
    assert channel.sent[0]["type"] == "send_audio"
    assert microphone.stopped
    assert speaker.closed
    assert channel.close_count == 1


@pytest.mark.asyncio
async def test_session_closed_does_not_stop_scheduled_audio():
    speaker = FakeSpeaker()
    controller = CallController(FakeChannel(), FakeMicrophone(), speaker)
    controller.handle_message(_audio_message(2400))

    controller.handle_message(SessionClosedMessage())

    assert len(controller.playback.active_sources) == 1
    assert controller.state is SessionState.CLOSED


@pytest.mark.asyncio
async def test_error_message_is_shown_to_user():
    statuses = []
    channel = FakeChannel([SessionOpenedMessage(), ErrorMessage(error="quota exceeded")])
    controller = CallController(channel, FakeMicrophone(), FakeSpeaker(), on_status=statuses.append)

    await asyncio.wait_for(controller.run(), timeout=1)

    assert controller.state is SessionState.ERRORED
    assert statuses == ["quota exceeded"]


@pytest.mark.asyncio
async def test_channel_failure_aborts_call():
    statuses = []
    error = CallSetupError("Connection to audio proxy failed. Ensure the relay is running.")
    channel = FakeChannel(connect_error=error)
    microphone = FakeMicrophone()
    speaker = FakeSpeaker()
    controller = CallController(channel, microphone, speaker, on_status=statuses.append)

    with pytest.raises(CallSetupError):
        await controller.run()

    assert statuses == [str(error)]
    assert controller.state is SessionState.ERRORED
    assert not speaker.started
    assert not microphone.stopped


@pytest.mark.asyncio
async def test_microphone_failure_aborts_call():
    statuses = []
    channel = FakeChannel()
    speaker = FakeSpeaker()
    microphone = FakeMicrophone(error=CallSetupError("Microphone connection failed."))
    controller = CallController(channel, microphone, speaker, on_status=statuses.append)

    with pytest.raises(CallSetupError):
        await controller.start()

    assert statuses == ["Microphone connection failed."]
    assert channel.close_count == 1
    assert speaker.closed


def test_parse_args_defaults():
    args = parse_args([])
    assert args.url == "ws://localhost:3001/ws/gemini-live"
    assert args.log_level == "INFO"
