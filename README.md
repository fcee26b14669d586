# fleetsrv

Building blocks for a server that manages a fleet of agents whose state lives
in Elasticsearch indices. The package has no dependencies outside the
standard library.

## Modules

- `fleetsrv.model`: dataclasses for the stored documents (`Action`,
  `ActionResult`, `Agent`, `Artifact`, `EnrollmentApiKey`, `Policy`,
  `PolicyLeader`, `Server`) and their metadata (`AgentMetadata`,
  `HostMetadata`, `ServerMetadata`). Each converts to and from a JSON-ready
  dict with `to_dict()` and `from_dict()`. The `id`, `version` and `seq_no`
  of a document are kept out of its JSON body and set with `es_initialize()`.
  `PolicyLeader` and `Server` read and write their `@timestamp` as RFC 3339
  with `time()` and `set_time()`.
- `fleetsrv.es_errors`: Elasticsearch errors (`ElasticError`,
  `VersionConflictError`, `ElasticNotFoundError`, `InvalidBodyError`,
  `IndexNotFoundError`, `ESTimeoutError`, `NotFoundError`),
  `translate_error(status, error)`, which turns a response status and error
  body into an exception or `None`, and `is_error(err, kind)`, which also
  looks through `ElasticError.unwrap()` and `__cause__`.
- `fleetsrv.es_result`: decoded responses: `Response`, `Hits`, `Hit`,
  `Bucket`, `Aggregation`, `AckResponse`, `ErrorInfo`, `Result`.
  `Hit.unmarshal(cls)` decodes a hit's source into a model class and fills in
  its id, sequence number and version.
- `fleetsrv.dsl_node`: a builder for the query DSL: `new_root()`, then
  `query()`, `bool()`, `filter()`, `must()`, `must_not()`, `term()`,
  `terms()`, `range()` with `with_range_gt()` / `with_range_lte()`, `exists()`,
  `match_all()`, `match_none()`, `sort()` with `sort_order()` and `SortOrder`,
  `size()`, `source()` with `includes()` / `excludes()`, `aggs()`, `agg()`,
  `top_hits()`, `max()`, `field()` and `param()`. `Node.to_json()` gives
  compact JSON with object keys sorted.
- `fleetsrv.dsl_tmpl`: query templates. `Tmpl.bind(name)` gives a placeholder
  `Token`, `resolve(node)` splits the query at the placeholders (raising
  `TokenUndefinedError` if a bound one is missing), and `render(params)` or
  `render_one(name, value)` produce the query bytes (raising
  `NotResolvedError` or `TokenNotFoundError`).
- `fleetsrv.es_checkpoints`: `GlobalCheckpointsRequest` builds the path and
  query parameters of a global checkpoints request; `format_duration()`
  formats its timeout; `process_global_checkpoint_response(status, body)`
  returns the checkpoints or raises.
- `fleetsrv.es_info`: `version_from_info(status, body)` returns the cluster
  version from an info response, lower case and without `-snapshot`.
- `fleetsrv.limiter`: `Limiter(interval, burst, max)` refuses requests over a
  rate (`RateLimitError`) or over a number in flight (`MaxLimitError`).
- `fleetsrv.coordinator`: the asyncio `Coordinator` interface and
  `CoordinatorZero`, which passes each policy through with its coordinator
  index raised from 0 to 1.
- `fleetsrv.subscription`: `SubscriptionMonitor` runs a monitor object you
  supply and hands each batch of hits to every `Subscription`; a subscriber
  that does not take a batch within the timeout (5 seconds by default)
  misses it.
- `fleetsrv.http_log`: `EcsLoggingMiddleware`, WSGI middleware that logs each
  request at debug level with ECS field names under the `ecs` extra, plus
  `ReaderCounter`, `split_addr()` and `strip_http()`.

## Installing

```
pip install .
```

## Example: a templated query

```python
from fleetsrv.dsl_node import new_root
from fleetsrv.dsl_tmpl import Tmpl

tmpl = Tmpl()
root = new_root()
root.query().bool().filter().term("policy_id", tmpl.bind("policy_id"), None)
tmpl.resolve(root)

body = tmpl.render_one("policy_id", "my-policy")
# b'{"query":{"bool":{"filter":[{"term":{"policy_id":"my-policy"}}]}}}'
```

## Example: reading search hits

```python
from fleetsrv.es_result import Response
from fleetsrv.model import Action

raw = {"hits": {"hits": [{"_id": "a1", "_seq_no": 3, "_source": {"action_id": "x"}}]}}
response = Response.from_dict(raw)
actions = [hit.unmarshal(Action) for hit in response.hits.hits]
# actions[0].id == "a1", actions[0].seq_no == 3, actions[0].action_id == "x"
```

## Example: limiting requests

```python
from datetime import timedelta
from fleetsrv.limiter import Limiter, RateLimitError, MaxLimitError

limiter = Limiter(interval=timedelta(milliseconds=10), burst=5, max=100)
try:
    release = limiter.acquire()
except (RateLimitError, MaxLimitError):
    ...  # refuse the request
else:
    try:
        ...  # handle the request
    finally:
        release()
```

## What this package does not do

It does not talk to Elasticsearch. There is no client, no HTTP transport, no
bulk indexer and no index monitor that polls for new documents: the
checkpoint and info functions decode responses you fetched yourself, and
`SubscriptionMonitor` needs a monitor object with `run()`, `output()` and
`get_checkpoint()` supplied by you. There is no policy leader election, no
server and no command to run.

## Running the tests

```
pip install .[test]
pytest
```