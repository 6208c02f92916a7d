import asyncio
import base64
import json

import numpy as np
import pytest

from omnibot.audio.capture import BlockFramer, CapturePipeline


class FakeChannel:
    def __init__(self, is_open=True):
        self.is_open = is_open
        self.sent = []

    async def send(self, text):
        self.sent.append(json.loads(text))


def _pcm(message):
    return base64.b64decode(message["payload"]["media"]["data"])


def test_block_framer_cuts_fixed_blocks():
    framer = BlockFramer(block_size=4)
    blocks = framer.push(np.arange(10, dtype=np.float32))
    assert [b.tolist() for b in blocks] == [[0, 1, 2, 3], [4, 5, 6, 7]]
    assert framer.pending == 2

    blocks = framer.push(np.arange(10, 12, dtype=np.float32))
    assert [b.tolist() for b in blocks] == [[8, 9, 10, 11]]
    assert framer.pending == 0


def test_block_framer_rejects_bad_size():
    with pytest.raises(ValueError):
        BlockFramer(block_size=0)


@pytest.mark.asyncio
async def test_frame_integrity():
    """A block of N samples becomes exactly 2N bytes of PCM"""
    channel = FakeChannel()
    pipeline = CapturePipeline(channel, block_size=4096)

    sent = await pipeline.process(np.full(4096, 0.25, dtype=np.float32))

    assert sent == 1
    assert len(channel.sent) == 1
    message = channel.sent[0]
    assert message["type"] == "send_audio"
    assert message["payload"]["media"]["mimeType"] == "audio/pcm;rate=16000"
    pcm = _pcm(message)
    assert len(pcm) == 2 * 4096
    assert set(np.frombuffer(pcm, dtype="<i2").tolist()) == {8192}


@pytest.mark.asyncio
async def test_frames_sent_in_capture_order():
    channel = FakeChannel()
    pipeline = CapturePipeline(channel, block_size=2)

    await pipeline.process(np.array([0.0, 0.0, 0.5, 0.5, -0.5, -0.5], dtype=np.float32))

    firsts = [np.frombuffer(_pcm(m), dtype="<i2")[0] for m in channel.sent]
    assert firsts == [0, 16384, -16384]


@pytest.mark.asyncio
async def test_frames_dropped_while_channel_closed():
    channel = FakeChannel(is_open=False)
    pipeline = CapturePipeline(channel, block_size=4)

    sent = await pipeline.process(np.zeros(8, dtype=np.float32))

    assert sent == 0
    assert channel.sent == []
    assert pipeline.frames_dropped == 2

    # Nothing is buffered for later
    channel.is_open = True
    await pipeline.process(np.zeros(4, dtype=np.float32))
    assert len(channel.sent) == 1
    assert pipeline.frames_sent == 1


@pytest.mark.asyncio
async def test_run_stops_on_sentinel():
    channel = FakeChannel()
    pipeline = CapturePipeline(channel, block_size=4)
    queue = asyncio.Queue()
    queue.put_nowait(np.zeros(6, dtype=np.float32))
    queue.put_nowait(np.zeros(2, dtype=np.float32))
    queue.put_nowait(None)

    await asyncio.wait_for(pipeline.run(queue), timeout=1)

    assert pipeline.frames_sent == 2
    assert pipeline.framer.pending == 0
