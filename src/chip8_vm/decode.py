"""Instruction decoding for the CHIP-8 VM.

This module turns raw 16-bit instruction words into tagged Instruction
values: an enumerated operation key plus the operand fields extracted from
the word. Decoding is pure, so it can be tested and used for disassembly
independently of execution.

Architecture:
    Raw word -> decode() -> Instruction(op, operands) -> Registry -> Execute

Operand fields (for word 0xFXYN / 0xFNNN):
    - X: bits 8-11, register index
    - Y: bits 4-7, register index
    - N: bits 0-3, 4-bit immediate
    - NN: bits 0-7, 8-bit immediate
    - NNN: bits 0-11, 12-bit address

Words that match no table entry decode to Op.INVALID with valid=False;
the orchestrator turns that into an UnsupportedOpcode fault.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple


class Op(str, Enum):
    """Operation keys, one per row of the opcode table."""

    CLS = "OP_CLS"
    RET = "OP_RET"
    JP = "OP_JP"
    CALL = "OP_CALL"
    SE_IMM = "OP_SE_IMM"
    SNE_IMM = "OP_SNE_IMM"
    SE_REG = "OP_SE_REG"
    LD_IMM = "OP_LD_IMM"
    ADD_IMM = "OP_ADD_IMM"
    LD_REG = "OP_LD_REG"
    OR = "OP_OR"
    AND = "OP_AND"
    XOR = "OP_XOR"
    ADD_REG = "OP_ADD_REG"
    SUB = "OP_SUB"
    SHR = "OP_SHR"
    SUBN = "OP_SUBN"
    SHL = "OP_SHL"
    SNE_REG = "OP_SNE_REG"
    LD_I = "OP_LD_I"
    JP_V0 = "OP_JP_V0"
    RND = "OP_RND"
    DRW = "OP_DRW"
    SKP = "OP_SKP"
    SKNP = "OP_SKNP"
    LD_VX_DT = "OP_LD_VX_DT"
    LD_KEY = "OP_LD_KEY"
    LD_DT = "OP_LD_DT"
    LD_ST = "OP_LD_ST"
    ADD_I = "OP_ADD_I"
    LD_FONT = "OP_LD_FONT"
    BCD = "OP_BCD"
    STORE = "OP_STORE"
    LOAD = "OP_LOAD"
    INVALID = "OP_INVALID"


@dataclass(frozen=True)
class Instruction:
    """Result of decoding one instruction word.

    Attributes:
        op: Operation key
        raw: Original 16-bit word
        x: Register index from bits 8-11
        y: Register index from bits 4-7
        n: 4-bit immediate
        nn: 8-bit immediate
        nnn: 12-bit address
        valid: Whether the word matched the opcode table
        error: Reason the word was rejected
    """
    op: Op
    raw: int
    x: int = 0
    y: int = 0
    n: int = 0
    nn: int = 0
    nnn: int = 0
    valid: bool = True
    error: Optional[str] = None

    @property
    def mnemonic(self) -> str:
        """Assembly-style rendering of the instruction."""
        template = _MNEMONICS.get(self.op)
        if template is None:
            return f"DW {self.raw:#06x}"
        return template.format(x=self.x, y=self.y, n=self.n, nn=self.nn, nnn=self.nnn)

    def __str__(self) -> str:
        return f"{self.raw:04X}  {self.mnemonic}"


_MNEMONICS: Dict[Op, str] = {
    Op.CLS: "CLS",
    Op.RET: "RET",
    Op.JP: "JP {nnn:#05x}",
    Op.CALL: "CALL {nnn:#05x}",
    Op.SE_IMM: "SE V{x:X}, {nn:#04x}",
    Op.SNE_IMM: "SNE V{x:X}, {nn:#04x}",
    Op.SE_REG: "SE V{x:X}, V{y:X}",
    Op.LD_IMM: "LD V{x:X}, {nn:#04x}",
    Op.ADD_IMM: "ADD V{x:X}, {nn:#04x}",
    Op.LD_REG: "LD V{x:X}, V{y:X}",
    Op.OR: "OR V{x:X}, V{y:X}",
    Op.AND: "AND V{x:X}, V{y:X}",
    Op.XOR: "XOR V{x:X}, V{y:X}",
    Op.ADD_REG: "ADD V{x:X}, V{y:X}",
    Op.SUB: "SUB V{x:X}, V{y:X}",
    Op.SHR: "SHR V{x:X}",
    Op.SUBN: "SUBN V{x:X}, V{y:X}",
    Op.SHL: "SHL V{x:X}",
    Op.SNE_REG: "SNE V{x:X}, V{y:X}",
    Op.LD_I: "LD I, {nnn:#05x}",
    Op.JP_V0: "JP V0, {nnn:#05x}",
    Op.RND: "RND V{x:X}, {nn:#04x}",
    Op.DRW: "DRW V{x:X}, V{y:X}, {n}",
    Op.SKP: "SKP V{x:X}",
    Op.SKNP: "SKNP V{x:X}",
    Op.LD_VX_DT: "LD V{x:X}, DT",
    Op.LD_KEY: "LD V{x:X}, K",
    Op.LD_DT: "LD DT, V{x:X}",
    Op.LD_ST: "LD ST, V{x:X}",
    Op.ADD_I: "ADD I, V{x:X}",
    Op.LD_FONT: "LD F, V{x:X}",
    Op.BCD: "LD B, V{x:X}",
    Op.STORE: "LD [I], V{x:X}",
    Op.LOAD: "LD V{x:X}, [I]",
}

# Families whose operation is fully determined by the top nibble
_FAMILY_OPS: Dict[int, Op] = {
    0x1: Op.JP,
    0x2: Op.CALL,
    0x3: Op.SE_IMM,
    0x4: Op.SNE_IMM,
    0x6: Op.LD_IMM,
    0x7: Op.ADD_IMM,
    0xA: Op.LD_I,
    0xB: Op.JP_V0,
    0xC: Op.RND,
    0xD: Op.DRW,
}

_SYSTEM_OPS: Dict[int, Op] = {
    0x00E0: Op.CLS,
    0x00EE: Op.RET,
}

# 8XYN, keyed on N
_ALU_OPS: Dict[int, Op] = {
    0x0: Op.LD_REG,
    0x1: Op.OR,
    0x2: Op.AND,
    0x3: Op.XOR,
    0x4: Op.ADD_REG,
    0x5: Op.SUB,
    0x6: Op.SHR,
    0x7: Op.SUBN,
    0xE: Op.SHL,
}

# EXNN, keyed on NN
_KEY_OPS: Dict[int, Op] = {
    0x9E: Op.SKP,
    0xA1: Op.SKNP,
}

# FXNN, keyed on NN
_MISC_OPS: Dict[int, Op] = {
    0x07: Op.LD_VX_DT,
    0x0A: Op.LD_KEY,
    0x15: Op.LD_DT,
    0x18: Op.LD_ST,
    0x1E: Op.ADD_I,
    0x29: Op.LD_FONT,
    0x33: Op.BCD,
    0x55: Op.STORE,
    0x65: Op.LOAD,
}


def decode(word: int) -> Instruction:
    """Decode a 16-bit instruction word.

    Args:
        word: Big-endian instruction word (0x0000-0xFFFF)

    Returns:
        Instruction with operation key and operand fields. Unrecognized
        words yield Op.INVALID with valid=False.
    """
    word &= 0xFFFF
    family = (word & 0xF000) >> 12
    fields = dict(
        raw=word,
        x=(word & 0x0F00) >> 8,
        y=(word & 0x00F0) >> 4,
        n=word & 0x000F,
        nn=word & 0x00FF,
        nnn=word & 0x0FFF,
    )

    op: Optional[Op]
    if family in _FAMILY_OPS:
        op = _FAMILY_OPS[family]
    elif family == 0x0:
        op = _SYSTEM_OPS.get(word)
    elif family == 0x5:
        op = Op.SE_REG if fields["n"] == 0 else None
    elif family == 0x8:
        op = _ALU_OPS.get(fields["n"])
    elif family == 0x9:
        op = Op.SNE_REG if fields["n"] == 0 else None
    elif family == 0xE:
        op = _KEY_OPS.get(fields["nn"])
    else:
        op = _MISC_OPS.get(fields["nn"])

    if op is None:
        return Instruction(
            Op.INVALID,
            valid=False,
            error=f"Unknown instruction word: {word:04X}",
            **fields
        )
    return Instruction(op, **fields)


def disassemble(image: bytes, origin: int = 0x200) -> List[Tuple[int, Instruction]]:
    """Decode a program image word by word.

    Args:
        image: Raw program bytes
        origin: Address of the first byte

    Returns:
        List of (address, Instruction). A trailing odd byte is ignored.
    """
    listing = []
    for offset in range(0, len(image) - 1, 2):
        word = (image[offset] << 8) | image[offset + 1]
        listing.append((origin + offset, decode(word)))
    return listing


def parse_program(source: str) -> bytes:
    """Parse hexadecimal program text into a program image.

    Handles:
        - Whitespace- or comma-separated 4-digit words ("6005 6105")
        - Optional 0x prefixes
        - Comments starting with ; or #

    Args:
        source: Program text

    Returns:
        Big-endian program bytes

    Raises:
        ValueError: If a token is not a 16-bit hexadecimal word
    """
    image = bytearray()
    for line in source.split("\n"):
        line = re.sub(r"[;#].*$", "", line).strip()
        if not line:
            continue
        for token in re.split(r"[\s,]+", line):
            digits = token[2:] if token.lower().startswith("0x") else token
            if not re.fullmatch(r"[0-9A-Fa-f]{1,4}", digits):
                raise ValueError(f"Invalid instruction word: {token}")
            image.extend(int(digits, 16).to_bytes(2, "big"))
    return bytes(image)
