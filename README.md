# tamperproxy

Building blocks for a programmable HTTP proxy. You register conditions
and handlers on a `Proxy` object. The handlers can:

- rewrite a request, or answer it directly without contacting the server;
- rewrite a response. They can work on its bytes, on its text after
  charset decoding, or on the images it carries;
- decide what happens to a `CONNECT` request: accept it, reject it,
  intercept it, or hand the connection to your own function.

## Installation

```
pip install tamperproxy
```

To run the test suite:

```
pip install tamperproxy[test]
pytest
```

## Core objects

`tamperproxy.ctx` defines the following objects:

- `Headers`: a case-insensitive collection that can hold several values per name.
  - It has `get`, `get_all`, `set`, `add`, `delete` and `items`.
- `Request`: an HTTP request.
  - Its fields are `method`, `url`, `header`, `body`, `host`, `remote_addr`, `request_uri` and `proto`.
  - `url` is a `urllib.parse.SplitResult`; a string is split for you.
  - `body` may be given as bytes.
  - `finish()` marks the request as done. `wait_done(timeout)` waits until it is done.
- `Response`: an HTTP response.
  - Its fields are `status_code`, `header`, `body`, `request`, `proto` and `content_length`.
  - It also has a `status` property, such as `"200 OK"`.
- `ProxyCtx`: the per-request context passed to every handler.
  - It carries `req`, `resp`, `error`, `user_data`, `session`, `round_tripper` and `proxy`.
  - `logf` logs only when `proxy.verbose` is true.
  - `warnf` always logs.
  - `charset()` returns the charset named in the response `Content-Type`, or `""`.
  - `round_trip(req)` sends the request. It uses `ctx.round_tripper` if one is set, and `proxy.transport` otherwise.

`tamperproxy.actions` defines the handler interfaces:

- `ReqHandler`, `RespHandler` and `HttpsHandler`. Each one wraps a function or can be subclassed.
- `ConnectAction` and `ConnectActionKind`, with the members `ACCEPT`, `REJECT`, `MITM` and `HIJACK`.
- The ready-made actions `OK_CONNECT`, `REJECT_CONNECT` and `MITM_CONNECT`.

## Registering handlers

All of these live in `tamperproxy.dispatcher`.

A request handler receives the request and the context, and returns a pair:

- `(req, None)` passes the request on.
- A pair whose second element is a `Response` answers the client with that response.

```python
from tamperproxy.dispatcher import Proxy, dst_host_is

proxy = Proxy()

def tag(req, ctx):
    req.header.set("X-Seen", "1")
    return req, None

proxy.on_request().do_func(tag)
proxy.on_request(dst_host_is("www.example.com")).do_func(tag)
```

A registered handler runs only if every condition given to `on_request(...)` holds. Otherwise it returns `(req, None)` unchanged.

The request conditions are:

- `url_has_prefix`
- `url_is`
- `url_matches`
- `req_host_is`
- `req_host_matches`
- `dst_host_is`
- `src_ip_is`
- `is_local_host`
- `not_`, which negates another condition

Plain functions of `(req, ctx)` are accepted as conditions too. Passing a response condition to `on_request` raises `TypeError`.

Response handlers work the same way:

```python
from tamperproxy.dispatcher import Proxy, content_type_is, handle_bytes

proxy = Proxy()
proxy.on_response(content_type_is("text/plain")).do(
    handle_bytes(lambda body, ctx: body.upper())
)
```

The response conditions are `content_type_is` and `status_code_is`. A request condition passed to `on_response` is tested against `ctx.req`.

For `CONNECT` requests:

```python
from tamperproxy.dispatcher import Proxy, always_mitm, always_reject, req_host_matches

proxy = Proxy()
proxy.on_request(req_host_matches(r"^blocked\.example\.com:443$")).handle_connect(always_reject)
proxy.on_request().handle_connect(always_mitm)
```

Further registration methods:

- `handle_connect_func` takes a function `(host, ctx) -> (action, host)`.
- `hijack_connect(f)` registers a `HIJACK` action that carries `f`.

When its conditions do not hold, a guarded `CONNECT` handler returns `(None, "")`.

## Running the handlers

Registered handlers are kept in order in `proxy.req_handlers`, `proxy.resp_handlers` and `proxy.https_handlers`. Your proxy loop calls them:

```python
from tamperproxy.ctx import ProxyCtx, Request

req = Request(method="GET", url="http://www.example.com/")
ctx = ProxyCtx(req=req, proxy=proxy)
resp = None
for handler in proxy.req_handlers:
    req, resp = handler.handle(req, ctx)
    if resp is not None:
        break
if resp is None:
    resp = ctx.round_trip(req)
for handler in proxy.resp_handlers:
    resp = handler.handle(resp, ctx)
```

`Proxy.transport` is a callable that takes a `Request` and returns a `Response`. You provide it.

## Extensions

### `tamperproxy.auth`

Basic proxy authentication:

- `basic(realm, check)` answers with a 407 response from `basic_unauthorized` unless the `Proxy-Authorization` credentials pass `check(user, pwd)`. The header is removed from the request either way.
- `basic_connect(realm, check)` does the same for `CONNECT` requests. On failure it sets `ctx.resp` and returns `REJECT_CONNECT`.
- `proxy_basic(proxy, realm, check)` installs both.

```python
from tamperproxy.auth import proxy_basic

proxy_basic(proxy, "my_realm", lambda user, pwd: user == "user" and pwd == "password")
```

### `tamperproxy.htmlfilter`

- `handle_string(f)` decodes the body with the charset from `Content-Type`, or UTF-8 if none is named. It calls `f(text, ctx)` and encodes the result back to the same charset. Bytes that do not decode pass through unchanged.
- `handle_string_reader(f)` does the same with text streams instead of a string.
- An unknown charset leaves the response untouched and logs a warning.
- If `ctx.error` is set, the handler returns `None`.
- `IS_HTML` matches `text/html` responses.

### `tamperproxy.imagefilter`

`handle_image(f)` decodes GIF, JPEG and PNG responses with status 200 using Pillow. It calls `f(image, ctx)` and encodes the result:

- GIF and PNG come back as PNG, and `Content-Type` is set to `image/png`.
- JPEG stays JPEG.
- For `application/octet-stream` the output format follows the decoded format.

A body that cannot be decoded is returned unchanged.

`RESP_IS_IMAGE` is the condition that selects these responses.

### `tamperproxy.limitation`

`concurrent_requests(limit)` blocks new requests while `limit` requests are unfinished. A slot is freed when `Request.finish()` is called. A limit of zero or less disables the check.

### `tamperproxy.scripts`

- `find_script_src(html)` lists the `src` of every `<script>` tag in order.
- `new_jquery_version_proxy()` returns a `Proxy` whose HTML response handler warns, through `ctx.warnf`, when one host serves different jQuery scripts.

### `tamperproxy.certstore`

`MemoryCertStorage.fetch(hostname, gen)` returns the cached certificate for `hostname`. If there is none, it calls `gen()` and caches the result.

### `tamperproxy.counterencryptor`

`CounterEncryptorRand.from_key(key, seed)` builds a reproducible byte stream from an RSA, EC or Ed25519 private key. The stream is AES applied to an incrementing counter. It has `read(n)`, `readinto(buf)` and `seed(block)`.

### `tamperproxy.chunked`

`ChunkedWriter(wire)` writes each `write` as one HTTP chunk. `close()`, or leaving a `with` block, writes the final `0\r\n` chunk.

## What this package does not do

The package contains no network code. It:

- does not listen for connections;
- does not parse requests off a socket;
- has no default transport for sending requests upstream;
- does not perform the TLS interception or connection hijacking that `ConnectAction` describes;
- provides no command-line program.

It supplies the filtering and decision logic that such a server would call.