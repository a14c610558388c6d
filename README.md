# removefile

Remove files and whole directory trees from Python, with control over how
the removal happens:

- recursive, depth-first removal of directories, optionally keeping the top
  directory itself (`RemoveFileFlags.KEEP_PARENT`);
- overwriting of file contents before unlinking: 1 pass of random data
  (`SECURE_1_PASS`), 1 pass of zeros (`SECURE_1_PASS_ZERO`), 3 passes
  (`SECURE_3_PASS`), the 7-pass DoD pattern (`SECURE_7_PASS`) or the
  35-pass Gutmann pattern (`SECURE_35_PASS`);
- staying on the starting filesystem unless `RemoveFileFlags.CROSS_MOUNT`
  is given;
- confirm, status and error callbacks that can proceed, skip or stop;
- cancellation from another thread;
- a lean walker (`RemoveFileFlags.RECURSIVE_SLIM`) that holds one open
  directory per level of depth.

Failures are raised as `OSError` with the matching `errno`
(`ENOENT`, `ENAMETOOLONG`, `ECANCELED`, `EINVAL`, ...).

The package has no dependencies outside the standard library.

## Installation

```
pip install .
```

## Removing files

`removefile.core.removefile(path, state=None, flags=0)` removes a file, or a
directory tree when `RemoveFileFlags.RECURSIVE` is given.

```python
from removefile.core import removefile
from removefile.state import RemoveFileFlags

# Remove a tree, overwriting every file once with random data first.
removefile("/tmp/scratch", None, RemoveFileFlags.RECURSIVE | RemoveFileFlags.SECURE_1_PASS)

# Empty a directory but keep it.
removefile("/tmp/cache", None, RemoveFileFlags.RECURSIVE | RemoveFileFlags.KEEP_PARENT)
```

Paths must be shorter than 1024 bytes; with
`RemoveFileFlags.ALLOW_LONG_PATHS` the limit is 8192 bytes and the walker
changes the working directory as it descends (it is restored afterwards).
A longer path raises `OSError` with `errno.ENAMETOOLONG`.

When an overwrite flag is set, regular files with a single link are
overwritten, then renamed to a random 14-character name in the same
directory and unlinked. Other entries, and directories, are renamed and
removed without being overwritten. The helpers behind this are
`removefile.sunlink` (`secure_unlink`, `overwrite_file`,
`overwrite_passes`, `buffer_size`, `triple_pattern`),
`removefile.rename_unlink` (`rename_unlink`, `random_sibling_name`,
`is_empty_directory`) and `removefile.randomness.RandomSource`, which reads
`/dev/urandom` when it is a character device and otherwise uses a seeded
generator.

Paths relative to an open directory descriptor go through
`removefileat(dir_fd, path, state=None, flags=0)`. Absolute paths, and a
`dir_fd` of `None`, behave as `removefile`; a descriptor that is not a
directory raises `OSError` with `errno.ENOTDIR`.

```python
import os
from removefile.core import removefileat
from removefile.state import RemoveFileFlags

fd = os.open("/tmp/project", os.O_RDONLY)
try:
    removefileat(fd, "build", None, RemoveFileFlags.RECURSIVE)
finally:
    os.close(fd)
```

## Callbacks and cancellation

A `RemoveFileState` carries callbacks and their contexts. Each callback is
called as `callback(state, path, context)` and returns a `CallbackResult`:
`PROCEED`, `SKIP` or `STOP`.

- The confirm callback is asked before each entry (directories before their
  contents). `SKIP` leaves the entry, and a skipped directory keeps its
  contents and itself.
- The status callback is called after each entry has been removed.
- The error callback is called when an entry cannot be removed; `PROCEED`
  or `SKIP` carries on, `STOP` ends the removal with an error. Without an
  error callback, the first error ends the removal. `ENOENT` and `ENOTDIR`
  below the top-level path are ignored.

```python
from removefile.core import removefile
from removefile.state import CallbackResult, RemoveFileFlags, RemoveFileState, StateKey

def confirm(state, path, context):
    return CallbackResult.SKIP if path.endswith(".keep") else CallbackResult.PROCEED

def on_error(state, path, context):
    print("could not remove", path, state.get(StateKey.ERRNO))
    return CallbackResult.PROCEED

with RemoveFileState() as state:
    state.set(StateKey.CONFIRM_CALLBACK, confirm)
    state.set(StateKey.ERROR_CALLBACK, on_error)
    removefile("/tmp/scratch", state, RemoveFileFlags.RECURSIVE)
```

`state.get` and `state.set` raise `OSError` with `errno.EINVAL` for an
unknown key. While a walk is running, `state.get(StateKey.FTSENT)` returns
the current `WalkEntry` (its `path`, `level`, `stat` and `accpath`).

Calling `removefile_cancel(state)` (or `state.cancel()`) from another thread
stops the removal, which then raises `OSError` with `errno.ECANCELED`.
`removefile_cancel(None)` raises `OSError` with `errno.EINVAL`.

The slim walker does not accept confirm or status callbacks, overwrite
flags or `ALLOW_LONG_PATHS`; with any of them it raises `OSError` with
`errno.EINVAL`. It only removes directories.

## What it does not do

- There is no command-line tool; the package is used from Python.
- `RemoveFileFlags.CLEAR_PURGEABLE` is accepted but has no effect, and
  `RemoveFileFlags.SYSTEM_DISCARDED` removes files like an ordinary unlink.
  Directories whose contents are not stored locally get no special handling.

## Checked integer arithmetic

`removefile.checkint` offers 32- and 64-bit signed and unsigned arithmetic
that raises `CheckIntOverflowError` instead of wrapping silently, for
example `check_int32_add(2**31 - 1, 1)`. The wrapped value is kept on the
exception as `result`. The 64-bit and division helpers take the signedness
of each operand as a `Signedness` value, signed by default.

## Running the tests

```
pip install .[test]
pytest
```