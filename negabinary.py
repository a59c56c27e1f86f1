#
# An implementation of arbitrary-precision integer arithmetic in base -2
#
# (c) Neil Booth 2007-2021.  All rights reserved.
#

import copy
import logging
import re
import threading
from enum import IntEnum

import attr

__all__ = ('Context', 'DefaultContext', 'get_context', 'set_context', 'local_context',
           'TextFormat', 'DefaultTextFormat', 'Compare', 'NegabinaryInteger',
           'NegabinaryError', 'RangeError', 'convert_for_arith',
           'OP_ADD', 'OP_SUBTRACT', 'OP_NEGATE', 'OP_TO_INT')


logger = logging.getLogger(__name__)


# Operation names
OP_ADD = 'add'
OP_SUBTRACT = 'subtract'
OP_NEGATE = 'negate'
OP_TO_INT = 'to_int'


# Three-way result of the compare() operation.  The members are signed so a result has
# the same sign as the difference of the operands.
class Compare(IntEnum):
    LESS_THAN = -1
    EQUAL = 0
    GREATER_THAN = 1


BIT_STRING_REGEX = re.compile('[01]*', re.ASCII)


@attr.s(slots=True, kw_only=True, eq=False)
class TextFormat:
    '''Controls the conversion of negabinary values to and from strings of binary digits.'''

    # If True the most significant bit is output first.  By default bits appear in storage
    # order, least significant first.
    high_first = attr.ib(default=False)
    # The text output for zero, which has no bits.
    zero = attr.ib(default='')
    # If positive, digits are output in groups of this many counting from the least
    # significant bit.
    group_size = attr.ib(default=0)
    # Output between groups.  Ignored on input.
    separator = attr.ib(default='_')

    def format_bits(self, bits):
        '''Return the text for a sequence of bits stored least significant first.'''
        if not bits:
            return self.zero
        digits = ''.join('1' if bit else '0' for bit in bits)
        if self.group_size > 0:
            size = self.group_size
            groups = [digits[n: n + size] for n in range(0, len(digits), size)]
        else:
            groups = [digits]
        if self.high_first:
            groups = [group[::-1] for group in reversed(groups)]
        return self.separator.join(groups)

    def parse_bits(self, string):
        '''Return a list of bits, least significant first, for text in this format.  Raises
        SyntaxError if the text has characters other than binary digits and separators.'''
        if string == self.zero:
            return []
        digits = string.replace(self.separator, '') if self.separator else string
        if not BIT_STRING_REGEX.fullmatch(digits):
            raise SyntaxError(f'invalid negabinary string: {string!r}')
        if self.high_first:
            digits = digits[::-1]
        return [digit == '1' for digit in digits]


DefaultTextFormat = TextFormat()


#
# Exceptions
#

class NegabinaryError(ArithmeticError):
    '''All arithmetic exceptions raised by this module subclass from this.

    The first argument is op_tuple, a tuple of the operation name and the operands causing
    the exception.
    '''

    @property
    def op_tuple(self):
        return self.args[0]


class RangeError(NegabinaryError, OverflowError):
    '''Raised by to_int() when a value does not fit in a signed integer of the requested
    width.  op_tuple is (OP_TO_INT, value, int_bits).'''

    @property
    def int_bits(self):
        return self.op_tuple[2]

    def __str__(self):
        _, value, int_bits = self.op_tuple
        return (f'negabinary {value.to_string(DefaultTextFormat)!r} does not fit in a '
                f'{int_bits}-bit signed integer')


class Context:
    '''The execution context for operations.  Carries the width of the native integers
    to_int() converts to, and the text format used for conversion to and from strings.'''

    __slots__ = ('int_bits', 'text_format')

    def __init__(self, *, int_bits=64, text_format=None):
        '''int_bits is the width of the signed integers to_int() delivers; zero means
        unbounded.  text_format defaults to DefaultTextFormat.
        '''
        if not isinstance(int_bits, int):
            raise TypeError('int_bits must be an integer')
        if int_bits != 0 and int_bits < 2:
            raise ValueError(f'int_bits must be zero or at least 2, got {int_bits}')
        if text_format is None:
            text_format = DefaultTextFormat
        elif not isinstance(text_format, TextFormat):
            raise TypeError('text_format must be a TextFormat instance')
        self.int_bits = int_bits
        self.text_format = text_format

    def copy(self):
        '''Return a (deep) copy of the context.'''
        return copy.deepcopy(self)

    def int_range(self):
        '''Return the inclusive (min_int, max_int) range of the integer width, or None if it
        is unbounded.'''
        if self.int_bits == 0:
            return None
        half = 1 << (self.int_bits - 1)
        return -half, half - 1

    def __repr__(self):
        return f'<Context int_bits={self.int_bits} text_format={self.text_format!r}>'


def _bool_list(bits):
    return [bool(bit) for bit in bits]


@attr.s(slots=True, eq=False, repr=False)
class NegabinaryInteger:
    '''Internal Representation
       -----------------------

    An integer is stored as a list of bits, least significant first, that are the digits
    of its base -2 expansion:

            value = sum(bits[i] * (-2)^i)

    As the base is negative, even positions carry positive weight and odd positions
    negative weight, so there is no sign bit and no limit on magnitude.  In canonical
    form the most significant bit is set and zero has no bits.  Arithmetic trims its
    results to canonical form; values built with from_bits() are kept as given until
    trim() is called.  Extra high-order zero bits never change the value.

    Values are independent: copying never shares storage, and arithmetic never mutates
    its operands.
    '''

    _bits = attr.ib(factory=list, converter=_bool_list)

    ##
    ## Construction and conversion
    ##

    @classmethod
    def from_int(cls, value):
        '''Return the integer value encoded in base -2.'''
        if not isinstance(value, int):
            raise TypeError('from_int requires an integer')
        bits = []
        while value:
            # Take the remainder in {0, 1} so that value == quotient * -2 + bit exactly.
            # Truncating division by -2 would give a remainder of -1 for odd negatives.
            bit = value & 1
            value = (value - bit) // -2
            bits.append(bit)
        return cls(bits)

    @classmethod
    def from_bits(cls, bits):
        '''Return a value with the given bits, least significant first.  Each item is a bit
        according to its truth value.  No validation or trimming is done.'''
        return cls(bits)

    @classmethod
    def from_string(cls, string, text_format=None, context=None):
        '''Return the value for a string of binary digits in the given text format, or that
        of the context if None.  The result is trimmed.'''
        if not isinstance(string, str):
            raise TypeError('from_string requires a string')
        text_format = text_format or (context or get_context()).text_format
        return cls(text_format.parse_bits(string)).trim()

    @classmethod
    def from_value(cls, value):
        '''Return a value derived from value.  Values of type int, str, list, tuple and
        NegabinaryInteger are passed on to from_int, from_string, from_bits and copy.'''
        converter = cls._converters.get(type(value))
        if not converter:
            raise TypeError(f'from_value cannot convert values of type {type(value)}')
        return converter(value)

    def copy(self):
        '''Return an independent copy of this value, untrimmed.'''
        return self.__class__(self._bits)

    def __copy__(self):
        return self.copy()

    def __deepcopy__(self, memo):
        return self.copy()

    def _value(self):
        result = 0
        bit_value = 1
        for bit in self._bits:
            if bit:
                result += bit_value
            bit_value *= -2
        return result

    def to_int(self, context=None):
        '''Return the value as a signed integer of the context's width.  Raises RangeError if
        it does not fit.  A width of zero means unbounded.'''
        context = context or get_context()
        int_bits = context.int_bits
        # A set bit above position int_bits puts the value beyond the range whatever the
        # lower bits are, so fail without accumulating.
        if int_bits and any(self._bits[int_bits + 1:]):
            raise self._range_error(int_bits)
        result = self._value()
        int_range = context.int_range()
        if int_range and not int_range[0] <= result <= int_range[1]:
            raise self._range_error(int_bits)
        return result

    def _range_error(self, int_bits):
        logger.debug('%s: %d-bit value does not fit %d signed bits',
                     OP_TO_INT, len(self._bits), int_bits)
        return RangeError((OP_TO_INT, self, int_bits))

    def to_string(self, text_format=None, context=None):
        '''Return the bits as text in the given format, or that of the context if None.  The
        default format is the binary digits least significant first, and zero is empty.'''
        text_format = text_format or (context or get_context()).text_format
        return text_format.format_bits(self._bits)

    @property
    def bits(self):
        '''A tuple of the bits, least significant first.'''
        return tuple(self._bits)

    def bit_length(self):
        '''Return the number of bits stored.  For a trimmed value this is one more than the
        position of the most significant bit, and zero for zero.'''
        return len(self._bits)

    def is_zero(self):
        return not any(self._bits)

    def is_negative(self):
        '''Return True if the value is less than zero.'''
        return self.compare(_zero) == Compare.LESS_THAN

    ##
    ## Normalization
    ##

    def trim(self):
        '''Remove high-order zero bits in place and return self.'''
        bits = self._bits
        while bits and not bits[-1]:
            bits.pop()
        return self

    ##
    ## Arithmetic.  These return new trimmed values and never mutate their operands.
    ##

    def _add_bit(self, position):
        '''Add (-2)^position to this value in place.  Returns True if the operation must carry
        by adding (-2)^(position + 2) as well.  Carries are left to the caller so that long
        carry chains do not recurse.'''
        bits = self._bits
        if len(bits) < position + 2:
            bits.extend([False] * (position + 2 - len(bits)))
        if not bits[position]:
            bits[position] = True
            return False
        bits[position] = False
        if bits[position + 1]:
            # 2 * (-2)^p + (-2)^(p+1) == 0
            bits[position + 1] = False
            return False
        # 2 * (-2)^p == (-2)^(p+1) + (-2)^(p+2)
        bits[position + 1] = True
        return True

    def _subtract_bit(self, position):
        '''Subtract (-2)^position from this value in place.  Returns True if the operation must
        borrow by subtracting (-2)^(position + 2) as well.'''
        bits = self._bits
        if len(bits) < position + 2:
            bits.extend([False] * (position + 2 - len(bits)))
        if bits[position]:
            bits[position] = False
            return False
        bits[position] = True
        if not bits[position + 1]:
            # -(-2)^p == (-2)^p + (-2)^(p+1)
            bits[position + 1] = True
            return False
        # -(-2)^p == (-2)^p - (-2)^(p+1) - (-2)^(p+2)
        bits[position + 1] = False
        return True

    def _step_each_bit(self, operation, rhs, step):
        result = self.copy()
        carries = 0
        for position, bit in enumerate(rhs._bits):
            if bit:
                while step(result, position):
                    position += 2
                    carries += 1
        result.trim()
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug('%s: %d-bit result after %d carries',
                         operation, len(result._bits), carries)
        return result

    def add(self, other):
        '''Return the sum of this and other, a NegabinaryInteger or an int.'''
        rhs = convert_for_arith(other)
        if rhs is None:
            raise TypeError(f'cannot add {type(other).__name__} to a NegabinaryInteger')
        return self._step_each_bit(OP_ADD, rhs, NegabinaryInteger._add_bit)

    def subtract(self, other):
        '''Return this minus other, a NegabinaryInteger or an int.  Bits are subtracted
        directly rather than adding the negation.'''
        rhs = convert_for_arith(other)
        if rhs is None:
            raise TypeError(f'cannot subtract {type(other).__name__} from a NegabinaryInteger')
        return self._step_each_bit(OP_SUBTRACT, rhs, NegabinaryInteger._subtract_bit)

    def negate(self):
        '''Return the value with the opposite sign.

        Each set bit is kept and complements the bit above it, which is then consumed.  A
        set top bit gains a set bit above it.
        '''
        negated = []
        bits = iter(self._bits)
        for bit in bits:
            negated.append(bit)
            if bit:
                negated.append(not next(bits, False))
        result = NegabinaryInteger(negated).trim()
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug('%s: %d-bit result', OP_NEGATE, len(result._bits))
        return result

    ##
    ## Comparison
    ##

    def compare(self, other):
        '''Return a Compare constant for this value against other, a NegabinaryInteger or an
        int.  Bits are scanned from the most significant down and the first difference
        decides; the result is never computed arithmetically.'''
        rhs = convert_for_arith(other)
        if rhs is None:
            raise TypeError(f'cannot compare a NegabinaryInteger with {type(other).__name__}')
        lhs_bits, rhs_bits = self._bits, rhs._bits
        lhs_len, rhs_len = len(lhs_bits), len(rhs_bits)
        for position in range(max(lhs_len, rhs_len) - 1, -1, -1):
            lhs_bit = position < lhs_len and lhs_bits[position]
            rhs_bit = position < rhs_len and rhs_bits[position]
            if lhs_bit == rhs_bit:
                continue
            # Even positions have positive weight, odd positions negative
            if position & 1:
                return Compare.LESS_THAN if lhs_bit else Compare.GREATER_THAN
            return Compare.GREATER_THAN if lhs_bit else Compare.LESS_THAN
        return Compare.EQUAL

    ##
    ## Python support - make it feel like a Python numeric data type.
    ##

    def __repr__(self):
        return f'NegabinaryInteger.from_string({self.to_string(DefaultTextFormat)!r})'

    def __str__(self):
        return self.to_string()

    def __hash__(self):
        '''Must hash equally to ints with the same value.'''
        return hash(self._value())

    def __bool__(self):
        return not self.is_zero()

    def __int__(self):
        '''Conversion to a Python int is unbounded and never raises RangeError.'''
        return self._value()

    def __neg__(self):
        return self.negate()

    def __pos__(self):
        return self.copy().trim()

    def __eq__(self, other):
        rhs = convert_for_arith(other)
        if rhs is None:
            return NotImplemented
        return self.compare(rhs) == Compare.EQUAL

    def __ne__(self, other):
        rhs = convert_for_arith(other)
        if rhs is None:
            return NotImplemented
        return self.compare(rhs) != Compare.EQUAL

    def __lt__(self, other):
        rhs = convert_for_arith(other)
        if rhs is None:
            return NotImplemented
        return self.compare(rhs) == Compare.LESS_THAN

    def __le__(self, other):
        rhs = convert_for_arith(other)
        if rhs is None:
            return NotImplemented
        return self.compare(rhs) != Compare.GREATER_THAN

    def __ge__(self, other):
        rhs = convert_for_arith(other)
        if rhs is None:
            return NotImplemented
        return self.compare(rhs) != Compare.LESS_THAN

    def __gt__(self, other):
        rhs = convert_for_arith(other)
        if rhs is None:
            return NotImplemented
        return self.compare(rhs) == Compare.GREATER_THAN

    def __add__(self, other):
        rhs = convert_for_arith(other)
        if rhs is None:
            return NotImplemented
        return self.add(rhs)

    def __sub__(self, other):
        rhs = convert_for_arith(other)
        if rhs is None:
            return NotImplemented
        return self.subtract(rhs)

    def __radd__(self, other):
        return self.__add__(other)

    def __rsub__(self, other):
        lhs = convert_for_arith(other)
        if lhs is None:
            return NotImplemented
        return lhs.subtract(self)


NegabinaryInteger._converters = {
    int: NegabinaryInteger.from_int,
    bool: NegabinaryInteger.from_int,
    str: NegabinaryInteger.from_string,
    list: NegabinaryInteger.from_bits,
    tuple: NegabinaryInteger.from_bits,
    NegabinaryInteger: NegabinaryInteger.copy,
}


def convert_for_arith(value):
    '''Convert value to something capable of doing arithmetic with a NegabinaryInteger.

    NegabinaryInteger values are returned unmodified and Python ints are converted.
    Otherwise None is returned.
    '''
    if isinstance(value, NegabinaryInteger):
        return value
    if isinstance(value, int):
        return NegabinaryInteger.from_int(value)
    return None


#
# Exported functions
#

DefaultContext = Context()
tls = threading.local()


def get_context():
    try:
        return tls.context
    except AttributeError:
        tls.context = DefaultContext.copy()
        return tls.context


def set_context(context):
    '''Sets the current thread's context to context (not a copy of it).'''
    tls.context = context


class LocalContext:
    '''A context manager that will set the current context for the active thread to a copy of
    context on entry to the with-statement and restore the previous context on exit.  If
    no context is specified a copy of the current context is taken instead.
    '''

    def __init__(self, context=None):
        self.saved_context = None
        self.context_to_set = context

    def __enter__(self):
        self.saved_context = get_context()
        context = (self.context_to_set or self.saved_context).copy()
        set_context(context)
        return context

    def __exit__(self, etype, value, traceback):
        set_context(self.saved_context)


local_context = LocalContext

_zero = NegabinaryInteger()
