"""Integration tests running small programs through Chip8VM."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from chip8_vm import Chip8VM, VMConfig
from chip8_vm.errors import UnsupportedOpcode


class TestAddProgram:
    """6005 6105 8014 00E0 - load, load, add, clear."""

    @pytest.fixture
    def vm(self):
        return Chip8VM()

    def test_result(self, vm):
        vm.load_source("6005 6105 8014 00E0")
        for _ in range(4):
            vm.step()

        assert vm.get_register(0) == 10
        assert vm.get_register(0xF) == 0
        assert vm.display.snapshot().lit_count == 0
        assert vm.get_cycle_count() == 4
        assert vm.get_pc() == 0x208

    def test_load_program_bytes(self, vm):
        vm.load_program(bytes.fromhex("60056105801400E0"))
        vm.run(4)
        assert vm.get_register(0) == 10


class TestCountdownProgram:
    """Loop decrementing V0 to zero."""

    def test_loop(self):
        program = """
            600A    ; 200: V0 = 10
            6101    ; 202: V1 = 1
            6200    ; 204: V2 = 0 (sum)
            8204    ; 206: V2 += V0
            8015    ; 208: V0 -= V1
            3000    ; 20A: skip if V0 == 0
            1206    ; 20C: loop
            120E    ; 20E: spin
        """
        vm = Chip8VM()
        vm.load_source(program)
        vm.run(3 + 10 * 4)
        assert vm.get_register(2) == 55
        assert vm.get_register(0) == 0
        assert vm.get_pc() == 0x20E


class TestSubroutineProgram:
    """Nested calls draw digits through the font."""

    def test_bcd_digits_drawn(self):
        program = """
            6A9D    ; 200: VA = 157
            A300    ; 202: I = 0x300
            FA33    ; 204: BCD
            F265    ; 206: V0..V2 = digits
            6300    ; 208: x = 0
            6400    ; 20A: y = 0
            F029    ; 20C: glyph V0
            D345    ; 20E
            7305    ; 210
            F129    ; 212: glyph V1
            D345    ; 214
            7305    ; 216
            F229    ; 218: glyph V2
            D345    ; 21A
            121C    ; 21C: spin
        """
        vm = Chip8VM()
        vm.load_source(program)
        vm.run(15)
        assert vm.state.registers[:3] == [1, 5, 7]
        assert vm.get_register(0xF) == 0
        text = vm.display.snapshot().to_text("#", ".").splitlines()
        # "1" glyph row 0 is 0x20: single pixel at column 2
        assert text[0][:4] == "..#."
        assert vm.get_pc() == 0x21C


class TestRunAndTrace:
    """Headless run loop, tracing and summaries."""

    def test_run_requires_limit(self):
        vm = Chip8VM()
        vm.load_source("1200")
        with pytest.raises(ValueError):
            vm.run()

    def test_run_uses_config_limit(self):
        vm = Chip8VM(VMConfig(max_cycles=25))
        vm.load_source("1200")
        vm.run()
        assert vm.get_cycle_count() == 25

    def test_run_stops_at_key_wait(self):
        vm = Chip8VM()
        vm.load_source("6001 F00A 6002")
        vm.run(100)
        assert vm.awaiting_key
        assert vm.get_cycle_count() == 2

    def test_trace_records_changes(self):
        vm = Chip8VM(VMConfig(trace=True))
        vm.load_source("6005 6105 8014")
        trace = vm.run(3)
        assert len(trace) == 3
        last = trace[-1]
        assert last.pc == 0x204
        assert last.opcode == 0x8014
        assert last.pre_state["registers"][0] == 5
        assert last.post_state["registers"][0] == 10
        assert last.error is None

    def test_trace_disabled_by_default(self):
        vm = Chip8VM()
        vm.load_source("6005")
        assert vm.run(1) == []

    def test_trace_is_capped(self):
        vm = Chip8VM(VMConfig(trace=True, max_trace=5))
        vm.load_source("1200")
        vm.run(20)
        assert len(vm.trace) == 5
        assert vm.trace[-1].cycle == 20

    def test_fault_is_traced(self):
        vm = Chip8VM(VMConfig(trace=True))
        vm.load_source("6001 0000")
        with pytest.raises(UnsupportedOpcode):
            vm.run(5)
        summary = vm.get_summary()
        assert summary["halted"] is True
        assert summary["errors"] == ["Unsupported opcode 0000 at 0x202"]

    def test_print_trace(self, capsys):
        vm = Chip8VM(VMConfig(trace=True))
        vm.load_source("6005 A123")
        vm.run(2)
        vm.print_trace()
        out = capsys.readouterr().out
        assert "LD V0, 0x05" in out
        assert "V0: 0 -> 5" in out
        assert "I: 000 -> 123" in out

    def test_summary(self):
        vm = Chip8VM()
        vm.load_source("6A3C FA18 A000 D005")
        vm.run(4)
        summary = vm.get_summary()
        assert summary["cycles"] == 4
        assert summary["sound_timer"] == 60
        assert summary["registers"]["VA"] == 60
        assert summary["lit_pixels"] > 0
        assert summary["stack_depth"] == 0


class TestLoadPolicy:
    """What survives a program load."""

    def test_default_load_keeps_machine_state(self):
        vm = Chip8VM()
        vm.load_source("6A07 FA15 A000 D005 2200")
        vm.run(5)
        vm.load_source("1200")
        assert vm.get_register(0xA) == 7
        assert vm.delay_timer == 7
        assert vm.state.stack == [0x20A]
        assert vm.display.snapshot().lit_count > 0
        assert vm.get_pc() == 0x200

    def test_reset_on_load(self):
        vm = Chip8VM(VMConfig(reset_on_load=True))
        vm.load_source("6A07 FA15 A000 D005 2200")
        vm.run(5)
        vm.set_keyboard(0x3)
        vm.load_source("1200")
        assert vm.get_register(0xA) == 0
        assert vm.delay_timer == 0
        assert vm.state.stack == []
        assert vm.display.snapshot().lit_count == 0
        assert vm.keyboard == 0

    def test_reload_during_key_wait_starts_new_program(self):
        vm = Chip8VM()
        vm.load_source("F00A")
        vm.step()
        assert vm.awaiting_key

        vm.load_source("6A07 6B08")
        assert vm.awaiting_key
        vm.press_key(3)
        vm.step()
        assert vm.get_register(0) == 3
        assert vm.get_pc() == 0x200

        vm.step()
        vm.step()
        assert vm.get_register(0xA) == 7
        assert vm.get_register(0xB) == 8

    def test_key_wait_resumes_after_fx0a(self):
        vm = Chip8VM()
        vm.load_source("6001 F20A 6102")
        vm.run(10)
        vm.press_key(0xE)
        vm.step()
        assert vm.get_pc() == 0x204
        vm.step()
        assert vm.get_register(2) == 0xE
        assert vm.get_register(1) == 2

    def test_load_after_fault_runs_new_program(self):
        vm = Chip8VM()
        vm.load_source("0000")
        with pytest.raises(UnsupportedOpcode):
            vm.step()
        assert vm.is_halted()
        vm.load_source("6001")
        assert not vm.is_halted()
        vm.step()
        assert vm.get_register(0) == 1

    def test_explicit_reset_recovers_halted_vm(self):
        vm = Chip8VM()
        vm.load_source("0000")
        with pytest.raises(UnsupportedOpcode):
            vm.step()
        vm.reset()
        vm.load_source("6001")
        vm.step()
        assert vm.get_register(0) == 1
