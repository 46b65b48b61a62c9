import heapq
from collections import Counter
from io import BytesIO
from types import MappingProxyType

from config import CompressionConfig
from errors import CorruptStreamError, EmptyInputError, InvalidTreeError

SINGLE_SYMBOL_CODE = "0" # code for a tree that is just one leaf


class LeafNode: # Leaf of the Huffman tree: one distinct symbol
    is_leaf = True
    __slots__ = ("symbol", "frequency")

    def __init__(self, symbol, frequency):
        self.symbol = symbol    # byte value 0..255
        self.frequency = frequency

    def __repr__(self):
        return f"LeafNode({self.symbol!r}, {self.frequency})"


class InternalNode: # Branch of the Huffman tree, owns exactly two children
    is_leaf = False
    __slots__ = ("frequency", "left", "right")

    def __init__(self, left, right):
        self.left = left
        self.right = right
        self.frequency = left.frequency + right.frequency

    def __repr__(self):
        return f"InternalNode({self.frequency}, {self.left!r}, {self.right!r})"


# Frequency analysis

def iter_chunks(stream, config: CompressionConfig): # yields chunks of symbols, cut at the terminator
    while True:
        chunk = stream.read(config.chunk_size)
        if not chunk:
            return
        if config.terminator is not None:
            cut = chunk.find(config.terminator)
            if cut != -1:
                if cut:
                    yield chunk[:cut]
                return # terminator ends the whole input, not just this chunk
        yield chunk


def build_frequency_table(stream, config: CompressionConfig = None): # stream: readable binary file object
    """
    Count every symbol the stream produces before the terminator (or EOF)
    Returns a read-only mapping of symbol -> count, sorted by symbol
    """
    config = config or CompressionConfig()
    counts = Counter()
    for chunk in iter_chunks(stream, config):
        counts.update(chunk)
    return MappingProxyType(dict(sorted(counts.items())))


def frequency_table_from_bytes(data: bytes, config: CompressionConfig = None):
    return build_frequency_table(BytesIO(data), config)


# Tree construction

def build_huffman_tree(frequency_table): # frequency_table: mapping of symbol -> frequency
    """
    Greedy Huffman construction over a min-heap keyed on (frequency, sequence)

    Leaves are numbered in ascending symbol order and each merged node takes the
    next number, so equal frequencies always resolve the same way. The first
    node popped becomes the left child, the second the right child.
    """
    if not frequency_table:
        raise EmptyInputError("frequency table is empty, there is nothing to encode")

    priority_queue = []
    for sequence, symbol in enumerate(sorted(frequency_table)):
        frequency = frequency_table[symbol]
        if frequency < 0:
            raise ValueError(f"negative frequency {frequency} for symbol {symbol!r}")
        priority_queue.append((frequency, sequence, LeafNode(symbol, frequency)))
    heapq.heapify(priority_queue)
    sequence = len(priority_queue)

    while len(priority_queue) > 1:
        _, _, left = heapq.heappop(priority_queue)
        _, _, right = heapq.heappop(priority_queue)
        merged_node = InternalNode(left, right)
        heapq.heappush(priority_queue, (merged_node.frequency, sequence, merged_node))
        sequence += 1

    return priority_queue[0][2] # root of the tree


def iter_nodes(root): # pre-order walk, iterative so deep trees are fine
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        if not node.is_leaf:
            stack.append(node.right)
            stack.append(node.left)


def count_internal_nodes(root) -> int:
    return sum(1 for node in iter_nodes(root) if not node.is_leaf)


def tree_depth(root) -> int:
    deepest = 0
    stack = [(root, 0)]
    while stack:
        node, depth = stack.pop()
        if node.is_leaf:
            deepest = max(deepest, depth)
        else:
            stack.append((node.left, depth + 1))
            stack.append((node.right, depth + 1))
    return deepest


# Code assignment

def generate_huffman_codes(root): # root: root of the Huffman tree
    """
    Map every leaf symbol to its root-to-leaf path ('0' = left, '1' = right)
    A tree that is a single leaf gets the one-bit code "0"
    """
    if root is None:
        raise InvalidTreeError("no tree to generate codes from")
    if root.is_leaf:
        return MappingProxyType({root.symbol: SINGLE_SYMBOL_CODE})

    codes = {}
    def generate_codes_helper(node, current_code): # recursive helper to walk the tree
        if node is None:
            raise InvalidTreeError(f"internal node at path {current_code[:-1]!r} is missing a child")
        if node.is_leaf:
            if node.symbol in codes:
                raise InvalidTreeError(f"symbol {node.symbol!r} appears in more than one leaf")
            codes[node.symbol] = current_code
            return

        generate_codes_helper(node.left, current_code + '0')
        generate_codes_helper(node.right, current_code + '1')

    generate_codes_helper(root, '')
    return MappingProxyType(dict(sorted(codes.items())))


def build_code_table(frequency_table):
    return generate_huffman_codes(build_huffman_tree(frequency_table))


def encoded_bit_length(frequency_table, code_table) -> int: # total payload bits, before padding
    return sum(count * len(code_table[symbol]) for symbol, count in frequency_table.items())


# Decoding

def huffman_decode(bits, root) -> bytes: # bits: iterable of 0/1 ints, root: tree the codes came from
    if root is None:
        raise InvalidTreeError("no tree to decode with")

    decoded_bytes = bytearray()
    if root.is_leaf:
        for bit in bits:
            if bit:
                raise CorruptStreamError("single-symbol stream contains a 1 bit")
            decoded_bytes.append(root.symbol)
        return bytes(decoded_bytes)

    current_node = root
    for bit in bits:
        current_node = current_node.right if bit else current_node.left
        if current_node.is_leaf: # reached a leaf
            decoded_bytes.append(current_node.symbol)
            current_node = root

    if current_node is not root:
        raise CorruptStreamError("bit stream ends in the middle of a code")
    return bytes(decoded_bytes)
