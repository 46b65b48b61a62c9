"""
Error kinds raised by the compressor

Every one of these aborts the current run; nothing here is meant to be
caught and retried inside the library.
"""


class CompressionError(Exception):
    pass


class EmptyInputError(CompressionError, ValueError): # no symbols before terminator / EOF
    pass


class InvalidTreeError(CompressionError, ValueError): # missing root or malformed node
    pass


class UnknownSymbolError(CompressionError, ValueError): # encoder saw a symbol with no code
    def __init__(self, symbol):
        super().__init__(f"symbol {symbol!r} has no entry in the code table")
        self.symbol = symbol


class CorruptStreamError(CompressionError, ValueError): # framed input cannot be decoded
    pass


class IOFailureError(CompressionError, OSError): # read / write on the underlying resource failed
    pass
