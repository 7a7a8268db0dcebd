"""Buildkite tool factories.

Each public function in the modules of this package takes a BuildkiteClient
and returns one ToolDescriptor:
    - clusters: clusters and cluster queues
    - pipelines: pipeline read/create/update
    - builds: build listing, inspection, creation and waiting
    - jobs: unblocking jobs
    - artifacts: build and job artifacts
    - logs: job log search/tail/read
    - tests: Test Engine runs and tests
    - annotations: build annotations
    - user: user, organization and token info

Grouping into toolsets happens in buildkite_mcp.toolsets.builtin.
"""
