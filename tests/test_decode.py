"""Tests for instruction decoding."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from chip8_vm.decode import Instruction, Op, decode, disassemble, parse_program


class TestInstructionFields:
    """Operand extraction."""

    def test_fields(self):
        ins = decode(0xD12F)
        assert ins.op == Op.DRW
        assert ins.raw == 0xD12F
        assert ins.x == 0x1
        assert ins.y == 0x2
        assert ins.n == 0xF
        assert ins.nn == 0x2F
        assert ins.nnn == 0x12F
        assert ins.valid is True
        assert ins.error is None

    def test_is_frozen(self):
        ins = decode(0x00E0)
        with pytest.raises(Exception):
            ins.x = 3


class TestDecodeTable:
    """Every opcode family maps to its operation key."""

    @pytest.mark.parametrize("word,op", [
        (0x00E0, Op.CLS),
        (0x00EE, Op.RET),
        (0x1ABC, Op.JP),
        (0x2ABC, Op.CALL),
        (0x3A12, Op.SE_IMM),
        (0x4A12, Op.SNE_IMM),
        (0x5AB0, Op.SE_REG),
        (0x6A12, Op.LD_IMM),
        (0x7A12, Op.ADD_IMM),
        (0x8AB0, Op.LD_REG),
        (0x8AB1, Op.OR),
        (0x8AB2, Op.AND),
        (0x8AB3, Op.XOR),
        (0x8AB4, Op.ADD_REG),
        (0x8AB5, Op.SUB),
        (0x8AB6, Op.SHR),
        (0x8AB7, Op.SUBN),
        (0x8ABE, Op.SHL),
        (0x9AB0, Op.SNE_REG),
        (0xAABC, Op.LD_I),
        (0xBABC, Op.JP_V0),
        (0xCA12, Op.RND),
        (0xDAB5, Op.DRW),
        (0xEA9E, Op.SKP),
        (0xEAA1, Op.SKNP),
        (0xFA07, Op.LD_VX_DT),
        (0xFA0A, Op.LD_KEY),
        (0xFA15, Op.LD_DT),
        (0xFA18, Op.LD_ST),
        (0xFA1E, Op.ADD_I),
        (0xFA29, Op.LD_FONT),
        (0xFA33, Op.BCD),
        (0xFA55, Op.STORE),
        (0xFA65, Op.LOAD),
    ])
    def test_family(self, word, op):
        assert decode(word).op == op

    @pytest.mark.parametrize("word", [
        0x0000, 0x0123, 0x00E1, 0x5AB1, 0x9AB1,
        0x8AB8, 0x8ABF, 0xEA00, 0xFA00, 0xFAFF,
    ])
    def test_unrecognized(self, word):
        ins = decode(word)
        assert ins.op == Op.INVALID
        assert ins.valid is False
        assert f"{word:04X}" in ins.error

    def test_masks_to_16_bits(self):
        assert decode(0x1_00E0).op == Op.CLS


class TestMnemonics:
    """Disassembly text."""

    def test_mnemonic(self):
        assert decode(0x6A2F).mnemonic == "LD VA, 0x2f"
        assert decode(0xD125).mnemonic == "DRW V1, V2, 5"
        assert decode(0x00E0).mnemonic == "CLS"

    def test_invalid_mnemonic(self):
        assert decode(0x0123).mnemonic == "DW 0x0123"

    def test_str_includes_word(self):
        assert str(decode(0x2208)) == "2208  CALL 0x208"

    def test_disassemble(self):
        listing = disassemble(bytes([0x60, 0x05, 0x00, 0xE0, 0x12]))
        assert [addr for addr, _ in listing] == [0x200, 0x202]
        assert listing[1][1].op == Op.CLS


class TestParseProgram:
    """Hex program text parsing."""

    def test_words(self):
        assert parse_program("6005 6105 8014 00E0") == bytes.fromhex("600561058014 00E0".replace(" ", ""))

    def test_comments_and_lines(self):
        source = """
            6005    ; V0 = 5
            # whole-line comment
            0x6105, 8014
        """
        assert parse_program(source) == bytes([0x60, 0x05, 0x61, 0x05, 0x80, 0x14])

    def test_short_word_is_padded(self):
        assert parse_program("E0") == bytes([0x00, 0xE0])

    def test_invalid_token(self):
        with pytest.raises(ValueError):
            parse_program("6005 XYZW")

    def test_too_long_token(self):
        with pytest.raises(ValueError):
            parse_program("60051")

    def test_empty(self):
        assert parse_program("; nothing here") == b""
