# fcguest

Building blocks for the guest side of a microVM container runtime. The package is pure Python and depends only on the standard library.

## Install

```
pip install .
pip install ".[test]"   # with pytest and pytest-asyncio
```

## Modules

### `fcguest.ids`

- `validate_identifier(value)` checks a container-style identifier and returns it unchanged if it is valid. A valid identifier is non-empty and at most 76 characters long. It is made of alphanumeric runs joined by single `.`, `_` or `-` characters.
- `task_exec_id(task_id, exec_id)` returns a URL-safe base64 key for a task/exec pair.
  - An empty `exec_id` stands for the task's initial process and is not validated.
  - Every validation failure is reported together in one `InvalidIdentifierError`, which is a subclass of `ValueError`.

### `fcguest.config`

`load_config(path=None)` reads the runtime JSON configuration and returns a `Config` dataclass that holds a nested `JailerConfig`.

Where `path` is not given or empty, the file is found in this order:

1. the path in the `FIRECRACKER_CONTAINERD_RUNTIME_CONFIG_PATH` environment variable;
2. `/etc/containerd/firecracker-runtime.json`.

Defaults are filled in for these fields:

| Field | Default |
| --- | --- |
| `kernel_args` | `console=ttyS0 noapic reboot=k panic=1 pci=off nomodules rw` |
| `kernel_image_path` | `/var/lib/firecracker-containerd/runtime/default-vmlinux.bin` |
| `root_drive` | `/var/lib/firecracker-containerd/runtime/default-rootfs.img` |
| `cpu_template` | `T2` |
| `shim_base_dir` | `/var/lib/firecracker-containerd/shim-base` |
| `jailer.runc_config_path` | `/etc/containerd/firecracker-runc-config.json` |

How the file is read:

- Unknown keys are ignored.
- A `null` value keeps the default.
- `default_network_interfaces` is kept as a list of plain dicts.
- A file that cannot be read, malformed JSON, or a value of the wrong type raises `ConfigError`.

### `fcguest.drives`

- `list_block_device_names(path)` returns the sorted entry names of a block directory such as `/sys/block`.
- `build_drive(block_path, drive_path, name)` returns a `Drive` whose `major_minor` is read from `<block_path>/<name>/dev`. `Drive.path()` gives the device node path.
- `eval_any_symlinks(path)` resolves symlinks as far as the path exists and appends the remaining part unresolved.
- `is_or_under_dir(path, base_dir)` is a lexical check of whether `path` is `base_dir` or lies beneath it.
- `check_system_dir(path)` returns the resolved destination. It raises `SystemDirError` if the destination resolves into `/proc`, `/sys` or `/dev`.
- `is_retryable_mount_error(err)` is true for an `OSError` carrying `EINVAL`.

### `fcguest.cleanup`

`CleanupRegistry.add(task_exec_id, cleanup)` registers a callback for a task/exec.

`CleanupRegistry.run(task_exec_id)`:

- runs the callbacks for that task/exec in reverse order of registration;
- forgets them afterwards;
- keeps going when a callback fails.

Failures are raised together as one `CleanupError`, whose `errors` list holds them in the order the callbacks ran. The registry is thread-safe.

### `fcguest.eventbridge`

The event bridge is built on asyncio.

`Exchange` has three methods:

- `publish(namespace, topic, event)` stamps a new `Envelope` with the current UTC time, broadcasts it and returns it.
- `forward(envelope)` broadcasts an existing envelope unchanged.
- `subscribe(*filters)` returns a subscription.

Namespaces must be valid identifiers. Topics must start with `/` and be made of identifier components.

Filters:

- A filter is a comma-separated list of conditions on `topic` or `namespace`, and every condition in it must hold.
- A condition uses `==`, `!=` or `~=` (regular expression), or is a bare field name, which requires that field to be set.
- An envelope is delivered if any one filter matches it. With no filters, every envelope is delivered.

A subscription can be awaited with `get()`, iterated with `async for`, closed with `close()`, or used as a context manager. Once closed, `get()` raises `EOFError`.

`GetterService(source)` subscribes to `source` and hands out one event at a time through `await get_event()`.

There are two bridging helpers. Each must be called inside a running event loop, returns an `asyncio.Task`, and is stopped by cancelling that task.

- `attach(getter, sink)` forwards every envelope from a getter into `sink`.
- `republish(source, sink, namespace)` subscribes to `source` straight away. It then publishes each event on `sink` under `namespace` with a fresh timestamp.

## Example

```python
import asyncio
from fcguest.eventbridge import Exchange, GetterService, attach

async def main():
    source, sink = Exchange(), Exchange()
    getter = GetterService(source)
    bridge = attach(getter, sink)
    with sink.subscribe('topic=="/tasks/exit"') as events:
        source.publish("default", "/tasks/exit", {"pid": 1})
        envelope = await events.get()
        print(envelope.namespace, envelope.topic, envelope.event)
    bridge.cancel()
    getter.close()

asyncio.run(main())
```

## What this package does not do

This package is a set of building blocks, not a running agent or runtime. It does not:

- mount or unmount drives, or tell stub drives apart from other devices by their content;
- run an RPC server, or talk over vsock or any other network transport;
- start, stop or manage virtual machines, containers or their processes;
- provide any command-line program.

## Tests

```
pytest
```