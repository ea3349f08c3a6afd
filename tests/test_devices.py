"""Tests for the display, keypad, timers and render collaborators."""

import io
import sys
import threading
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from chip8_vm.display import DISPLAY_HEIGHT, DISPLAY_WIDTH, DisplayBuffer, DisplaySnapshot
from chip8_vm.events import FrameReady, RedrawRequested
from chip8_vm.keypad import Keypad, key_for_char
from chip8_vm.render import PhosphorDecay, TerminalRenderer
from chip8_vm.state import Chip8State
from chip8_vm.timers import Timers


class TestDisplayBuffer:
    """XOR drawing and clipping."""

    def test_starts_blank(self):
        display = DisplayBuffer()
        assert display.snapshot().lit_count == 0
        assert display.snapshot().width == DISPLAY_WIDTH
        assert display.snapshot().height == DISPLAY_HEIGHT

    def test_draw_row_bits(self):
        display = DisplayBuffer()
        assert display.draw_sprite(0, 0, bytes([0b10100000])) is False
        assert display.lit(0, 0)
        assert not display.lit(1, 0)
        assert display.lit(2, 0)

    def test_xor_collision(self):
        display = DisplayBuffer()
        display.draw_sprite(4, 4, bytes([0xF0]))
        assert display.draw_sprite(4, 4, bytes([0x80])) is True
        assert not display.lit(4, 4)
        assert display.lit(5, 4)

    def test_no_collision_when_lighting_only(self):
        display = DisplayBuffer()
        display.draw_sprite(0, 0, bytes([0xF0]))
        assert display.draw_sprite(0, 1, bytes([0xF0])) is False

    def test_clip_right_and_bottom(self):
        display = DisplayBuffer()
        display.draw_sprite(62, 31, bytes([0xFF, 0xFF]))
        snapshot = display.snapshot()
        assert snapshot.lit_count == 2
        assert snapshot.lit(62, 31)
        assert snapshot.lit(63, 31)
        assert not snapshot.lit(0, 0)

    def test_clear(self):
        display = DisplayBuffer()
        display.draw_sprite(0, 0, bytes([0xFF]))
        display.clear()
        assert display.snapshot().lit_count == 0

    def test_snapshot_is_immutable_copy(self):
        display = DisplayBuffer()
        snapshot = display.snapshot()
        display.draw_sprite(0, 0, bytes([0xFF]))
        assert snapshot.lit_count == 0
        with pytest.raises(Exception):
            snapshot.pixels = b""

    def test_to_text(self):
        display = DisplayBuffer(width=4, height=2)
        display.draw_sprite(0, 1, bytes([0x90]))
        assert display.snapshot().to_text("#", ".") == "....\n#..#"
        assert len(list(display.snapshot().rows())) == 2


class TestKeypad:
    """Bitmask state and the blocking-read latch."""

    def test_key_for_char(self):
        assert key_for_char("0") == 0
        assert key_for_char("a") == 0xA
        assert key_for_char("F") == 0xF
        assert key_for_char("g") is None
        assert key_for_char("") is None
        assert key_for_char("10") is None

    def test_press_and_release(self):
        keypad = Keypad()
        keypad.press(0x3)
        keypad.press(0xF)
        assert keypad.state == (1 << 3) | (1 << 15)
        assert keypad.is_pressed(0x3)
        keypad.release(0x3)
        assert not keypad.is_pressed(0x3)
        assert keypad.state == 1 << 15

    def test_set_state_masks_to_16_bits(self):
        keypad = Keypad()
        keypad.set_state(0x1_0001)
        assert keypad.state == 0x0001

    def test_out_of_range_key_is_not_pressed(self):
        assert Keypad().is_pressed(16) is False

    def test_invalid_key(self):
        keypad = Keypad()
        with pytest.raises(ValueError):
            keypad.press(16)
        with pytest.raises(ValueError):
            keypad.deliver(-1)

    def test_latch_is_taken_once(self):
        keypad = Keypad()
        assert keypad.take_pending() is None
        keypad.deliver(0x7)
        assert keypad.take_pending() == 0x7
        assert keypad.take_pending() is None

    def test_clear_pending_and_reset(self):
        keypad = Keypad()
        keypad.deliver(0x1)
        keypad.clear_pending()
        assert keypad.take_pending() is None
        keypad.press(0x2)
        keypad.deliver(0x2)
        keypad.reset()
        assert keypad.state == 0
        assert keypad.take_pending() is None

    def test_concurrent_presses(self):
        keypad = Keypad()

        def press_all(keys):
            for _ in range(200):
                for key in keys:
                    keypad.press(key)

        threads = [threading.Thread(target=press_all, args=(range(i, 16, 4),)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert keypad.state == 0xFFFF


class TestTimers:
    """Frame-rate countdowns."""

    def test_tick_decrements_both(self):
        state = Chip8State(delay_timer=3, sound_timer=1)
        timers = Timers(state)
        assert timers.sound_active
        timers.tick()
        assert state.delay_timer == 2
        assert state.sound_timer == 0
        assert not timers.sound_active

    def test_stops_at_zero(self):
        state = Chip8State()
        timers = Timers(state)
        timers.tick_delay()
        timers.tick_sound()
        assert state.delay_timer == 0
        assert state.sound_timer == 0


def make_frame(frame, pixels=b"\x00\x00\x00\x00", sound=False):
    return FrameReady(frame=frame, display=DisplaySnapshot(2, 2, pixels), sound_active=sound)


class TestTerminalRenderer:
    """Text output only on change."""

    def test_draws_changed_frames_only(self):
        stream = io.StringIO()
        renderer = TerminalRenderer(stream=stream, on="#", off=".", clear=False)
        renderer(make_frame(1, b"\x01\x00\x00\x01"))
        renderer(make_frame(2, b"\x01\x00\x00\x01"))
        renderer(make_frame(3, b"\x00\x00\x00\x00"))
        assert renderer.frames_drawn == 2
        assert stream.getvalue() == "#.\n.#\n..\n..\n"

    def test_clear_sequence(self):
        stream = io.StringIO()
        renderer = TerminalRenderer(stream=stream)
        renderer(make_frame(1))
        assert stream.getvalue().startswith(TerminalRenderer.CLEAR)

    def test_ignores_redraw_events(self):
        stream = io.StringIO()
        renderer = TerminalRenderer(stream=stream)
        renderer(RedrawRequested(1, make_frame(1).display))
        assert stream.getvalue() == ""
        assert renderer.frames_drawn == 0


class TestPhosphorDecay:
    """Intensity persistence."""

    def test_lit_pixels_full_intensity(self):
        decay = PhosphorDecay(width=2, height=2, rate=0.5)
        decay(make_frame(1, b"\x01\x00\x00\x00"))
        assert decay.intensity == [1.0, 0.0, 0.0, 0.0]

    def test_unlit_pixels_fade(self):
        decay = PhosphorDecay(width=2, height=2, rate=0.5, floor=0.2)
        decay.update(make_frame(1, b"\x01\x00\x00\x00").display)
        decay.update(make_frame(2).display)
        assert decay.intensity[0] == pytest.approx(0.5)
        decay.update(make_frame(3).display)
        assert decay.intensity[0] == pytest.approx(0.25)
        decay.update(make_frame(4).display)
        assert decay.intensity[0] == 0.0

    def test_rows(self):
        decay = PhosphorDecay(width=2, height=2)
        decay.update(make_frame(1, b"\x00\x00\x01\x00").display)
        assert decay.rows() == [[0.0, 0.0], [1.0, 0.0]]

    @pytest.mark.parametrize("rate", [-0.1, 1.0, 1.5])
    def test_invalid_rate(self, rate):
        with pytest.raises(ValueError):
            PhosphorDecay(rate=rate)
