"""Unit tests for PacketAssembler."""

import random
import unittest

from rayneo_sdk.protocol.assembler import PacketAssembler
from rayneo_sdk.protocol.constants import PKT_MAGIC
from tests.fakes import response_frame, sensor_frame


def drain(assembler):
    frames = []
    while True:
        frame = assembler.next_packet()
        if frame is None:
            return frames
        frames.append(frame)


def noise(rng, n):
    """Random bytes that never contain the sync byte."""
    return bytes(rng.choice([b for b in range(256) if b != PKT_MAGIC]) for _ in range(n))


class TestPacketAssembler(unittest.TestCase):
    """Test framing of a chunked byte stream."""

    def setUp(self):
        self.assembler = PacketAssembler()

    def test_empty(self):
        self.assertIsNone(self.assembler.next_packet())
        self.assertEqual(self.assembler.size, 0)

    def test_single_frame(self):
        frame = sensor_frame(tick=5)
        self.assembler.append(frame)

        self.assertEqual(self.assembler.next_packet(), frame)
        self.assertIsNone(self.assembler.next_packet())
        self.assertEqual(self.assembler.size, 0)

    def test_count_limits_copied_bytes(self):
        frame = response_frame(1)
        self.assembler.append(frame + b"\x00" * 32, len(frame))

        self.assertEqual(self.assembler.size, len(frame))
        self.assertEqual(self.assembler.next_packet(), frame)

    def test_zero_count_ignored(self):
        self.assembler.append(b"\x99\x65\x40", 0)
        self.assertEqual(self.assembler.size, 0)

    def test_partial_frame_not_returned_until_complete(self):
        frame = sensor_frame(tick=77)
        self.assembler.append(frame[:30])
        self.assertIsNone(self.assembler.next_packet())
        self.assertEqual(self.assembler.size, 30)

        self.assembler.append(frame[30:63])
        self.assertIsNone(self.assembler.next_packet())

        self.assembler.append(frame[63:])
        self.assertEqual(self.assembler.next_packet(), frame)
        self.assertIsNone(self.assembler.next_packet())

    def test_leading_noise_discarded(self):
        frame = response_frame(0)
        self.assembler.append(b"\x01\x02\x03\x04\x05" + frame)

        self.assertEqual(self.assembler.next_packet(), frame)
        self.assertEqual(self.assembler.size, 0)

    def test_noise_without_frame_is_compacted(self):
        self.assembler.append(b"\x00" * 20 + b"\x99\x65\x40")

        self.assertIsNone(self.assembler.next_packet())
        # Only the possible frame start is kept
        self.assertEqual(self.assembler.size, 3)

        frame = sensor_frame()
        self.assembler.append(frame[3:])
        self.assertEqual(self.assembler.next_packet(), frame)

    def test_short_length_treated_as_noise(self):
        frame = sensor_frame()
        self.assembler.append(bytes([PKT_MAGIC, 0x65, 2, 0]) + frame)

        self.assertEqual(self.assembler.next_packet(), frame)

    def test_multiple_frames_in_one_chunk(self):
        frames = [sensor_frame(tick=i) for i in range(5)]
        self.assembler.append(b"".join(frames))

        self.assertEqual(drain(self.assembler), frames)

    def test_overflow_resets_buffer(self):
        assembler = PacketAssembler(capacity=128)
        assembler.append(sensor_frame()[:40])
        frame = response_frame(1)
        assembler.append(frame + frame)  # 40 + 128 > 128

        # The partial frame is dropped, the new chunk kept
        self.assertEqual(assembler.overflow_count, 1)
        self.assertEqual(assembler.size, 128)
        self.assertEqual(drain(assembler), [frame, frame])

    def test_overflow_on_remaining_capacity(self):
        assembler = PacketAssembler(capacity=128)
        assembler.append(sensor_frame()[:100])
        frame = response_frame(1, length=40)
        assembler.append(frame)  # 100 + 40 > 128

        self.assertEqual(assembler.overflow_count, 1)
        self.assertEqual(drain(assembler), [frame])

    def test_chunk_larger_than_capacity_truncated(self):
        assembler = PacketAssembler(capacity=100)
        frame = response_frame(2)
        assembler.append(frame + bytes(200))

        self.assertEqual(assembler.size, 100)
        self.assertEqual(assembler.next_packet(), frame)

    def test_size_never_exceeds_capacity(self):
        rng = random.Random(3)
        assembler = PacketAssembler(capacity=256)
        for _ in range(200):
            assembler.append(bytes(rng.randrange(256) for _ in range(rng.randrange(1, 300))))
            self.assertLessEqual(assembler.size, 256)

    def test_chunked_stream_with_noise_yields_all_frames(self):
        rng = random.Random(1234)
        for _ in range(25):
            frames = []
            stream = bytearray()
            for i in range(rng.randrange(1, 20)):
                stream += noise(rng, rng.randrange(0, 12))
                if rng.random() < 0.5:
                    frame = sensor_frame(tick=i, gyro=(rng.random(), 0.0, -rng.random()))
                else:
                    frame = response_frame(rng.randrange(8), length=rng.randrange(9, 64))
                frames.append(frame)
                stream += frame
            stream += noise(rng, rng.randrange(0, 3))

            assembler = PacketAssembler()
            received = []
            pos = 0
            while pos < len(stream):
                size = rng.randrange(1, 100)
                chunk = bytes(stream[pos:pos + size])
                pos += size
                assembler.append(chunk, len(chunk))
                received.extend(drain(assembler))

            self.assertEqual(received, frames)

    def test_clear(self):
        self.assembler.append(sensor_frame()[:10])
        self.assembler.clear()
        self.assertEqual(self.assembler.size, 0)


if __name__ == '__main__':
    unittest.main()
