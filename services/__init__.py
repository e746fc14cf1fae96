"""Services package: the conquest transaction pipeline.

Submodules are imported explicitly by callers (`services.pricing`,
`services.conquest`, ...) so that the stores can depend on
`services.pricing` without pulling in the rest of the pipeline.

- `pricing`: price escalation and display formatting
- `rate_limiter`: sliding-window admission control
- `batch_validator`: request validation against authoritative cell state
- `payment`: settlement gateways
- `committer`: ownership commit with paid-but-not-committed reporting
- `job_queue`: durable asynchronous conquest jobs
- `conquest`: pay-then-commit pipeline and sync/async routing
- `sweeper`: periodic re-drive of pending jobs
"""

__all__ = [
	"pricing",
	"rate_limiter",
	"batch_validator",
	"payment",
	"committer",
	"job_queue",
	"conquest",
	"sweeper",
]
