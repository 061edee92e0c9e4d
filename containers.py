import logging
from enum import Enum
from typing import Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar("V")

# Number of buckets used when a table is created without an explicit capacity.
DEFAULT_CAPACITY = 100

HASH_MULTIPLIER = 31
HASH_MASK = 0xFFFFFFFF


class ContainerError(Exception):
    """Base exception for this module."""


class TableAllocationError(ContainerError, MemoryError):
    """Raised when the table or one of its entries could not be allocated."""


class TableDestroyedError(ContainerError, RuntimeError):
    """Raised when a table is used after teardown."""


class RemoveResult(Enum):
    # Mirrors the status codes of the C runtime this table replaces.
    REMOVED = 1
    NOT_FOUND = -1

    def __bool__(self):
        return self is RemoveResult.REMOVED


# Validates that the key can be stored. Keys are text only and may not contain NUL, since
# hashing and comparison are defined over the characters before the terminator. O(k)
def check_key(key):
    if not isinstance(key, str):
        raise TypeError("keys must be str, not " + type(key).__name__)
    if "\0" in key:
        raise ValueError("keys may not contain NUL characters")


# Polynomial accumulator over the UTF-8 bytes of the key, wrapping at 32 bits like an
# unsigned int would. Runs in O(k) where k is the length of the key.
def raw_hash(key):
    acc = 0
    for b in key.encode("utf-8"):
        acc = (acc * HASH_MULTIPLIER + b) & HASH_MASK
    return acc


# Maps a key to a bucket index in [0, capacity). O(k)
def hash_key(key, capacity):
    return raw_hash(key) % capacity


class Entry(object):
    # Chain node. Owns its key copy and the rest of the chain after it, but only references
    # the value. O(1) to initialize.
    def __init__(self, key, value, next_entry=None):
        self.key = str(key)
        self.value = value
        self.next = next_entry

    def __repr__(self):
        return "Entry(" + repr(self.key) + ", " + repr(self.value) + ")"

    # Drops every reference held by the node. The value itself is left alone since it
    # belongs to the caller. O(1)
    def release(self):
        self.key = None
        self.value = None
        self.next = None


class HashTable(Generic[V]):
    # Separate chaining hash table with a fixed number of buckets. The bucket count is set
    # at instantiation and never changes, so chains grow instead of the table.
    # O(n) to initialize the bucket list where n is the capacity.
    def __init__(self, capacity=DEFAULT_CAPACITY):
        if isinstance(capacity, bool) or not isinstance(capacity, int):
            raise TypeError("capacity must be an int, not " + type(capacity).__name__)
        if capacity < 1:
            raise ValueError("capacity must be at least 1, got " + str(capacity))
        try:
            self.buckets = [None] * capacity
        # OverflowError when the capacity does not fit in a list index at all.
        except (MemoryError, OverflowError) as e:
            logger.warning("could not allocate %d buckets", capacity)
            raise TableAllocationError("could not allocate " + str(capacity) + " buckets") from e
        self.capacity = capacity
        self.len = 0
        # Bumped on every structural change so live iterators can notice.
        self.changes = 0
        logger.debug("created hash table with %d buckets", capacity)

    def __repr__(self):
        if not self.is_live:
            return "HashTable(capacity=" + str(self.capacity) + ", destroyed)"
        return "HashTable(capacity=" + str(self.capacity) + ", entries=" + str(self.len) + ")"

    # Number of entries stored, duplicates included. O(1) since the count is kept up to date.
    def __len__(self):
        self.check_live()
        return self.len

    # Subscript retrieval follows the mapping protocol and raises KeyError for missing keys.
    # O(1) if chains are short
    def __getitem__(self, key):
        entry = self.find(key)
        if entry is None:
            raise KeyError(key)
        return entry.value

    # table[key] = value is the same as insert, so it shadows rather than replaces. O(1)
    def __setitem__(self, key, value):
        self.insert(key, value)

    # Removes the most recent entry for the key, raising KeyError if there is none. O(1)
    def __delitem__(self, key):
        if not self.remove(key):
            raise KeyError(key)

    # Allows use of the in keyword. O(1) if there are few collisions
    def __contains__(self, key):
        return self.find(key) is not None

    # Iterates (key, value) pairs in bucket order. O(1) to create, O(n + capacity) to exhaust.
    def __iter__(self):
        self.check_live()
        return HashTableIterator(self)

    def __enter__(self):
        self.check_live()
        return self

    def __exit__(self, exc_type, exc, tb):
        if self.is_live:
            self.teardown()
        return False

    @property
    def is_live(self):
        return self.buckets is not None

    def check_live(self):
        if self.buckets is None:
            logger.warning("hash table used after teardown")
            raise TableDestroyedError("hash table has been torn down")

    # Bucket index for the key within this table. O(k)
    def hash(self, key):
        check_key(key)
        return hash_key(key, self.capacity)

    # Prepends a new entry to the key's chain. Existing entries with the same key are left in
    # place behind it, which makes the newest value the one that lookups see. O(1)
    def insert(self, key: str, value: V) -> None:
        self.check_live()
        index = self.hash(key)
        try:
            entry = Entry(key, value, self.buckets[index])
        except MemoryError as e:
            logger.warning("could not allocate entry for key %r", key)
            raise TableAllocationError("could not allocate entry for key " + repr(key)) from e
        self.buckets[index] = entry
        self.len += 1
        self.changes += 1

    # Walks the key's chain from the head and returns the first matching entry or None.
    # O(1) if chains are short, O(n) if every key collides.
    def find(self, key):
        self.check_live()
        current = self.buckets[self.hash(key)]
        while current is not None:
            if current.key == key:
                return current
            current = current.next
        return None

    # Retrieves the most recently inserted value for the key. A missing key is not an error;
    # default is returned instead. O(1) if chains are short
    def get(self, key: str, default: Optional[V] = None) -> Optional[V]:
        entry = self.find(key)
        if entry is None:
            return default
        return entry.value

    # Unlinks and returns the first entry matching the key, or None. O(1) if chains are short
    def unlink(self, key):
        self.check_live()
        index = self.hash(key)
        prev = None
        current = self.buckets[index]
        while current is not None:
            if current.key == key:
                if prev is None:
                    self.buckets[index] = current.next
                else:
                    prev.next = current.next
                self.len -= 1
                self.changes += 1
                return current
            prev = current
            current = current.next
        return None

    # Removes only the most recent entry for the key, so an older duplicate becomes visible
    # again. Reports NOT_FOUND instead of raising when the key is absent. O(1)
    def remove(self, key: str) -> RemoveResult:
        entry = self.unlink(key)
        if entry is None:
            return RemoveResult.NOT_FOUND
        entry.release()
        return RemoveResult.REMOVED

    # Same as remove but hands back the removed value. O(1)
    def pop(self, key: str, default: Optional[V] = None) -> Optional[V]:
        entry = self.unlink(key)
        if entry is None:
            return default
        value = entry.value
        entry.release()
        return value

    # Number of entries chained in the given bucket. O(c) for a chain of length c
    def chain_length(self, index):
        self.check_live()
        if not 0 <= index < self.capacity:
            raise IndexError("bucket index " + str(index) + " out of range for capacity " + str(self.capacity))
        count = 0
        current = self.buckets[index]
        while current is not None:
            count += 1
            current = current.next
        return count

    # Allows for the keys stored in the table to be iterated in bucket order. O(1)
    def key_iterator(self):
        self.check_live()
        return HashKeyIterator(self)

    # Allows for the values stored in the table to be iterated in bucket order. O(1)
    def value_iterator(self):
        self.check_live()
        return HashValueIterator(self)

    # Releases every entry of every chain in chain order, then the bucket list itself. Values
    # are never touched. Returns the number of entries released. O(n + capacity)
    def teardown(self):
        self.check_live()
        released = 0
        for i in range(self.capacity):
            entry = self.buckets[i]
            self.buckets[i] = None
            while entry is not None:
                following = entry.next
                entry.release()
                released += 1
                entry = following
        self.buckets = None
        self.len = 0
        self.changes += 1
        logger.debug("tore down hash table, released %d entries", released)
        return released


class HashTableIterator(object):
    # Walks the table bucket by bucket and each chain head to tail. Remembers the table's
    # change count so that inserting or removing mid-walk is reported instead of yielding
    # released entries. O(1) to initialize.
    def __init__(self, hash_table):
        self.ht = hash_table
        self.index = 0
        self.current = None
        self.expected_changes = hash_table.changes

    def __iter__(self):
        return self

    # Value handed out for each entry. Subclasses narrow it to the key or the value.
    def project(self, entry):
        return entry.key, entry.value

    # Amortized O(1) when the table is not sparse.
    def __next__(self):
        self.ht.check_live()
        if self.ht.changes != self.expected_changes:
            raise RuntimeError("hash table changed during iteration")
        while self.current is None:
            if self.index >= self.ht.capacity:
                raise StopIteration
            self.current = self.ht.buckets[self.index]
            self.index += 1
        entry = self.current
        self.current = entry.next
        return self.project(entry)


class HashKeyIterator(HashTableIterator):
    def project(self, entry):
        return entry.key


class HashValueIterator(HashTableIterator):
    def project(self, entry):
        return entry.value
