"""OpcodeRegistry: execution primitives for the CHIP-8 VM.

This module implements the registry pattern for opcode execution: every
operation key produced by the decoder maps to exactly one handler, and the
registry is frozen once populated so the dispatch table cannot change at
runtime.

Each handler has the signature (vm, instruction) -> None and mutates the
VM's state, display and timers in place. The program counter has already
been advanced past the instruction when a handler runs, so skips add 2 and
the fetch address is ``state.pc - 2``.

Flag convention for the ALU ops: result and flag are computed from the
pre-op register values, then VF is written first and Vx second.
"""

import logging
from typing import TYPE_CHECKING, Callable, Dict, Optional, Set

from .decode import Instruction, Op
from .errors import StackOverflow, StackUnderflow, UnsupportedOpcode
from .fonts import FONT_ADDRESS, GLYPH_STRIDE
from .state import BYTE_MASK, WORD_MASK

if TYPE_CHECKING:
    from .cpu import Chip8VM


logger = logging.getLogger(__name__)

Handler = Callable[["Chip8VM", Instruction], None]


class OpcodeRegistry:
    """Frozen dispatch table from operation key to handler.

    Attributes:
        _handlers: Dictionary mapping operation keys to handler functions
        _frozen: Whether the registry is locked against modifications
    """

    def __init__(self):
        self._handlers: Dict[Op, Handler] = {}
        self._frozen = False
        self._register_all_handlers()
        self.freeze()

    def _register_all_handlers(self) -> None:
        # Display and flow
        self.register(Op.CLS, self._op_cls)
        self.register(Op.RET, self._op_ret)
        self.register(Op.JP, self._op_jp)
        self.register(Op.CALL, self._op_call)
        self.register(Op.JP_V0, self._op_jp_v0)

        # Conditional skips
        self.register(Op.SE_IMM, self._op_se_imm)
        self.register(Op.SNE_IMM, self._op_sne_imm)
        self.register(Op.SE_REG, self._op_se_reg)
        self.register(Op.SNE_REG, self._op_sne_reg)
        self.register(Op.SKP, self._op_skp)
        self.register(Op.SKNP, self._op_sknp)

        # Constants and ALU
        self.register(Op.LD_IMM, self._op_ld_imm)
        self.register(Op.ADD_IMM, self._op_add_imm)
        self.register(Op.LD_REG, self._op_ld_reg)
        self.register(Op.OR, self._op_or)
        self.register(Op.AND, self._op_and)
        self.register(Op.XOR, self._op_xor)
        self.register(Op.ADD_REG, self._op_add_reg)
        self.register(Op.SUB, self._op_sub)
        self.register(Op.SHR, self._op_shr)
        self.register(Op.SUBN, self._op_subn)
        self.register(Op.SHL, self._op_shl)
        self.register(Op.RND, self._op_rnd)

        # Index register and memory
        self.register(Op.LD_I, self._op_ld_i)
        self.register(Op.ADD_I, self._op_add_i)
        self.register(Op.LD_FONT, self._op_ld_font)
        self.register(Op.BCD, self._op_bcd)
        self.register(Op.STORE, self._op_store)
        self.register(Op.LOAD, self._op_load)

        # Graphics
        self.register(Op.DRW, self._op_drw)

        # Timers and input
        self.register(Op.LD_VX_DT, self._op_ld_vx_dt)
        self.register(Op.LD_DT, self._op_ld_dt)
        self.register(Op.LD_ST, self._op_ld_st)
        self.register(Op.LD_KEY, self._op_ld_key)

        self.register(Op.INVALID, self._op_invalid)

    def register(self, key: Op, handler: Handler) -> None:
        """Register a handler for an operation key.

        Raises:
            RuntimeError: If registry is frozen
            ValueError: If key already registered
        """
        if self._frozen:
            raise RuntimeError("Cannot register handlers: registry is frozen")
        if key in self._handlers:
            raise ValueError(f"Handler already registered: {key}")
        self._handlers[key] = handler

    def freeze(self) -> None:
        self._frozen = True

    def is_frozen(self) -> bool:
        return self._frozen

    def get_valid_keys(self) -> Set[Op]:
        return set(self._handlers.keys())

    def execute(self, vm: "Chip8VM", instruction: Instruction) -> None:
        """Execute one decoded instruction against ``vm``.

        Raises:
            KeyError: If the operation key has no handler
        """
        if instruction.op not in self._handlers:
            raise KeyError(f"Unknown operation key: {instruction.op}")

        self._handlers[instruction.op](vm, instruction)
        vm.state.cycle_count += 1

    # =========================================================================
    # Display and flow
    # =========================================================================

    def _op_cls(self, vm: "Chip8VM", ins: Instruction) -> None:
        vm.display.clear()
        vm.request_redraw()

    def _op_ret(self, vm: "Chip8VM", ins: Instruction) -> None:
        state = vm.state
        if not state.stack:
            raise StackUnderflow(state.pc - 2)
        state.pc = state.stack.pop()

    def _op_jp(self, vm: "Chip8VM", ins: Instruction) -> None:
        vm.state.pc = ins.nnn

    def _op_call(self, vm: "Chip8VM", ins: Instruction) -> None:
        """CALL NNN - push the return address and jump.

        Growth is unbounded unless the VM was given a stack capacity.
        """
        state = vm.state
        limit = vm.max_stack_depth
        if limit is not None and len(state.stack) >= limit:
            raise StackOverflow(state.pc - 2, len(state.stack))
        state.stack.append(state.pc)
        state.pc = ins.nnn

    def _op_jp_v0(self, vm: "Chip8VM", ins: Instruction) -> None:
        vm.state.pc = (ins.nnn + vm.state.registers[0]) & WORD_MASK

    # =========================================================================
    # Conditional skips
    # =========================================================================

    @staticmethod
    def _skip_if(vm: "Chip8VM", condition: bool) -> None:
        if condition:
            vm.state.pc += 2

    def _op_se_imm(self, vm: "Chip8VM", ins: Instruction) -> None:
        self._skip_if(vm, vm.state.registers[ins.x] == ins.nn)

    def _op_sne_imm(self, vm: "Chip8VM", ins: Instruction) -> None:
        self._skip_if(vm, vm.state.registers[ins.x] != ins.nn)

    def _op_se_reg(self, vm: "Chip8VM", ins: Instruction) -> None:
        regs = vm.state.registers
        self._skip_if(vm, regs[ins.x] == regs[ins.y])

    def _op_sne_reg(self, vm: "Chip8VM", ins: Instruction) -> None:
        regs = vm.state.registers
        self._skip_if(vm, regs[ins.x] != regs[ins.y])

    def _op_skp(self, vm: "Chip8VM", ins: Instruction) -> None:
        self._skip_if(vm, vm.keypad.is_pressed(vm.state.registers[ins.x]))

    def _op_sknp(self, vm: "Chip8VM", ins: Instruction) -> None:
        self._skip_if(vm, not vm.keypad.is_pressed(vm.state.registers[ins.x]))

    # =========================================================================
    # Constants and ALU
    # =========================================================================

    def _op_ld_imm(self, vm: "Chip8VM", ins: Instruction) -> None:
        vm.state.set_register(ins.x, ins.nn)

    def _op_add_imm(self, vm: "Chip8VM", ins: Instruction) -> None:
        """ADD Vx, NN - wraps at 8 bits, VF untouched."""
        vm.state.set_register(ins.x, vm.state.registers[ins.x] + ins.nn)

    def _op_ld_reg(self, vm: "Chip8VM", ins: Instruction) -> None:
        vm.state.set_register(ins.x, vm.state.registers[ins.y])

    def _op_or(self, vm: "Chip8VM", ins: Instruction) -> None:
        regs = vm.state.registers
        vm.state.set_register(ins.x, regs[ins.x] | regs[ins.y])

    def _op_and(self, vm: "Chip8VM", ins: Instruction) -> None:
        regs = vm.state.registers
        vm.state.set_register(ins.x, regs[ins.x] & regs[ins.y])

    def _op_xor(self, vm: "Chip8VM", ins: Instruction) -> None:
        regs = vm.state.registers
        vm.state.set_register(ins.x, regs[ins.x] ^ regs[ins.y])

    def _op_add_reg(self, vm: "Chip8VM", ins: Instruction) -> None:
        """ADD Vx, Vy - VF = carry out of bit 7."""
        regs = vm.state.registers
        total = regs[ins.x] + regs[ins.y]
        vm.state.set_flag(total > BYTE_MASK)
        vm.state.set_register(ins.x, total)

    def _op_sub(self, vm: "Chip8VM", ins: Instruction) -> None:
        """SUB Vx, Vy - VF = 1 when no borrow (Vx >= Vy)."""
        regs = vm.state.registers
        vx, vy = regs[ins.x], regs[ins.y]
        vm.state.set_flag(vx >= vy)
        vm.state.set_register(ins.x, vx - vy)

    def _op_shr(self, vm: "Chip8VM", ins: Instruction) -> None:
        """SHR Vx - VF = bit shifted out, Vy ignored."""
        vx = vm.state.registers[ins.x]
        vm.state.set_flag(vx & 1)
        vm.state.set_register(ins.x, vx >> 1)

    def _op_subn(self, vm: "Chip8VM", ins: Instruction) -> None:
        """SUBN Vx, Vy - Vx = Vy - Vx, VF = 1 when Vy >= Vx."""
        regs = vm.state.registers
        vx, vy = regs[ins.x], regs[ins.y]
        vm.state.set_flag(vy >= vx)
        vm.state.set_register(ins.x, vy - vx)

    def _op_shl(self, vm: "Chip8VM", ins: Instruction) -> None:
        vx = vm.state.registers[ins.x]
        vm.state.set_flag((vx >> 7) & 1)
        vm.state.set_register(ins.x, vx << 1)

    def _op_rnd(self, vm: "Chip8VM", ins: Instruction) -> None:
        vm.state.set_register(ins.x, vm.random_byte() & ins.nn)

    # =========================================================================
    # Index register and memory
    # =========================================================================

    def _op_ld_i(self, vm: "Chip8VM", ins: Instruction) -> None:
        vm.state.index = ins.nnn

    def _op_add_i(self, vm: "Chip8VM", ins: Instruction) -> None:
        state = vm.state
        state.index = (state.index + state.registers[ins.x]) & WORD_MASK

    def _op_ld_font(self, vm: "Chip8VM", ins: Instruction) -> None:
        state = vm.state
        state.index = FONT_ADDRESS + state.registers[ins.x] * GLYPH_STRIDE

    def _op_bcd(self, vm: "Chip8VM", ins: Instruction) -> None:
        """LD B, Vx - hundreds, tens and ones digits at I, I+1, I+2."""
        value = vm.state.registers[ins.x]
        digits = bytes([value // 100, (value // 10) % 10, value % 10])
        vm.state.write_block(vm.state.index, digits)

    def _op_store(self, vm: "Chip8VM", ins: Instruction) -> None:
        state = vm.state
        state.write_block(state.index, bytes(state.registers[:ins.x + 1]))

    def _op_load(self, vm: "Chip8VM", ins: Instruction) -> None:
        state = vm.state
        data = state.read_block(state.index, ins.x + 1)
        state.registers[:ins.x + 1] = list(data)

    # =========================================================================
    # Graphics
    # =========================================================================

    def _op_drw(self, vm: "Chip8VM", ins: Instruction) -> None:
        """DRW Vx, Vy, N - XOR an N-row sprite from memory at I.

        Coordinates are read before VF is overwritten with the collision
        flag, so drawing at VF's value works as expected.
        """
        state = vm.state
        x, y = state.registers[ins.x], state.registers[ins.y]
        sprite = state.read_block(state.index, ins.n)
        collision = vm.display.draw_sprite(x, y, sprite)
        state.set_flag(collision)
        vm.request_redraw()

    # =========================================================================
    # Timers and input
    # =========================================================================

    def _op_ld_vx_dt(self, vm: "Chip8VM", ins: Instruction) -> None:
        vm.state.set_register(ins.x, vm.state.delay_timer)

    def _op_ld_dt(self, vm: "Chip8VM", ins: Instruction) -> None:
        vm.state.delay_timer = vm.state.registers[ins.x]

    def _op_ld_st(self, vm: "Chip8VM", ins: Instruction) -> None:
        vm.state.sound_timer = vm.state.registers[ins.x]

    def _op_ld_key(self, vm: "Chip8VM", ins: Instruction) -> None:
        """LD Vx, K - enter the blocking-read state.

        PC is rewound onto this instruction; Chip8VM.step completes the read
        once a key is delivered and continues at ``resume_pc``. The key latch
        is cleared before ``awaiting_key`` is raised, so any delivery made
        after the wait is visible is kept.
        """
        state = vm.state
        vm.keypad.clear_pending()
        state.key_register = ins.x
        state.resume_pc = state.pc
        state.pc -= 2
        state.awaiting_key = True
        logger.debug(f"Waiting for key press into V{ins.x:X}.")

    def _op_invalid(self, vm: "Chip8VM", ins: Instruction) -> None:
        raise UnsupportedOpcode(ins.raw, vm.state.pc - 2)


# Singleton registry instance
_registry: Optional[OpcodeRegistry] = None


def get_registry() -> OpcodeRegistry:
    """Get the shared frozen OpcodeRegistry."""
    global _registry
    if _registry is None:
        _registry = OpcodeRegistry()
    return _registry
