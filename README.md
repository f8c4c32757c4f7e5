# zpatterns

Protocol logic for reliable messaging patterns, written against any socket
that sends and receives multipart messages (lists of `bytes` frames). The
package decides what to send and how to react to what arrives; the transport
is yours to supply.

## The socket contract

Components talk to a socket through the `zpatterns.mdp.MessageSocket`
protocol:

- `send_multipart(frames)` sends one message made of several frames,
- `recv_multipart()` returns the next message as a list of frames,
- `poll(timeout)` returns true when a message can be received within
  `timeout` seconds (`None` waits forever),
- `close()` releases the socket.

Anything offering these four methods can be plugged in, so the patterns are
easy to drive with in-memory fakes. Several components also take a `clock`
callable (default `time.monotonic`) so that expiry and heartbeats can be
tested without waiting.

## What is inside

| Module | Contents |
| --- | --- |
| `zpatterns.mdp` | Majordomo constants (`MDPC_CLIENT`, `MDPW_WORKER`, `MDPW_READY` … `MDPW_DISCONNECT`), `MessageSocket`, `unwrap`, `command_name`, `MajordomoError`, `ProtocolError` |
| `zpatterns.mdcli` | `MajordomoClient` (synchronous, reconnects and retries) and `AsyncMajordomoClient` (sends without waiting, `recv` with timeout) |
| `zpatterns.mdwrk` | `MajordomoWorker`: registers a service, answers requests, heartbeats and reconnects |
| `zpatterns.mdbroker` | `Broker`, `Service`, `Worker`: a Majordomo broker with `mmi.service` lookups; `run_once` polls, handles one message and heartbeats when due |
| `zpatterns.titanic` | `TitanicStore` (requests and replies as files), `request_filename`, `reply_filename`, `service_success`, `service_call` |
| `zpatterns.ppqueue` | `WorkerQueue`, `WorkerEntry`: Paranoid Pirate worker list with heartbeat expiry |
| `zpatterns.flcliapi` | `Agent`, `Server`: Freelance client state, request dispatch, pings and timeouts |
| `zpatterns.flserver` | `sequenced_reply`, `freelance_reply`: Freelance server answers |
| `zpatterns.lbbroker` | `LoadBalancer`: least-recently-used worker routing |
| `zpatterns.lvcache` | `LastValueCache`: keeps the last body per topic and answers new subscriptions |
| `zpatterns.intface` | `PeerTracker`, `Peer`: UUID beacon handling and peer expiry events |
| `zpatterns.kvsimple` | `KVMessage`, `recv_kvmsg`: key, sequence and body frames |
| `zpatterns.kvmsg` | `KVMessage`, `recv_kvmsg`: adds a UUID frame and `name=value` properties |
| `zpatterns.weather` | `format_update`, `random_update`, `parse_temperature`, `average_temperature` |

## Examples

A Majordomo client calling an `echo` service:

```python
from zpatterns.mdcli import MajordomoClient

with MajordomoClient("tcp://localhost:5555", socket_factory, False, 2.5, 3) as client:
    reply = client.send("echo", "Hello world")
```

`socket_factory` is called with the broker endpoint and must return a fresh,
connected `MessageSocket`; the client calls it again each time it reconnects.
When every retry goes unanswered, `send` raises `MajordomoError`; a malformed
reply raises `ProtocolError`.

Key-value messages with properties:

```python
from zpatterns.kvmsg import KVMessage, recv_kvmsg

msg = KVMessage(2)
msg.key = "key"
msg.body = "body"
msg.set_prop("prop2", "value2")
msg.generate_uuid()
msg.send(output_socket)

received = recv_kvmsg(input_socket)
received.get_prop("prop2")   # "value2"
```

A load balancer that hands each client request to the longest-idle worker:

```python
from zpatterns.lbbroker import LoadBalancer

balancer = LoadBalancer()
reply = balancer.worker_message(worker_frames)    # None for READY, else frames for the client
frames = balancer.client_message(client_frames)   # [worker, b"", *client_frames] for the backend
len(balancer)                                     # workers currently waiting
```

Weather updates:

```python
from zpatterns.weather import format_update, parse_temperature

line = format_update(10001, 72, 40)   # "10001 72 40"
parse_temperature(line)               # 72
```

## What the package does not do

- It ships no socket implementation and no network transport: every
  component needs a `MessageSocket` supplied by the caller.
- It has no command-line programs. The broker, the Titanic store and the
  Freelance agent are objects to drive from your own loop; nothing here runs
  them as servers or background threads.
- `PeerTracker` only interprets beacons and reports peers that join or leave;
  sending and receiving the UDP broadcasts is left to the caller.

## Running the tests

Install the `test` extra and run `pytest` from the project root.