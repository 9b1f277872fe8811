"""Initialize the integration gate in a repository."""

import json
from pathlib import Path
from typing import Optional

from ..config import default_unit_config


GATE_WORKFLOW_TEMPLATE = '''name: Integration Gate

on:
  pull_request:
    branches: [{integration}]
    types: [opened, synchronize, reopened, ready_for_review]

concurrency:
  group: integration-gate-${{{{ github.event.pull_request.number }}}}
  cancel-in-progress: true

permissions:
  contents: read
  pull-requests: write
  statuses: write

jobs:
  gate:
    runs-on: ubuntu-latest
    steps:
      - uses: actions/checkout@v4
        with:
          ref: ${{{{ github.event.pull_request.head.sha }}}}
          fetch-depth: 0
      - uses: actions/setup-node@v4
        with:
          node-version-file: .nvmrc
      - uses: actions/setup-python@v5
        with:
          python-version: "3.12"
      - run: pip install integration-gate
      - name: Validate affected units
        env:
          GITHUB_TOKEN: ${{{{ secrets.GITHUB_TOKEN }}}}
        run: integration-gate handle-event
'''

PROMOTE_WORKFLOW_TEMPLATE = '''name: Promote {integration} to {stable}

on:
  push:
    branches: [{integration}]

concurrency:
  group: promote-{stable}
  cancel-in-progress: false

permissions:
  contents: write
  statuses: write

jobs:
  promote:
    runs-on: ubuntu-latest
    steps:
      - uses: actions/checkout@v4
        with:
          fetch-depth: 0
      - uses: actions/setup-node@v4
        with:
          node-version-file: .nvmrc
      - uses: actions/setup-python@v5
        with:
          python-version: "3.12"
      - run: pip install integration-gate
      - name: Validate and fast-forward {stable}
        env:
          GITHUB_TOKEN: ${{{{ secrets.GITHUB_TOKEN }}}}
        run: integration-gate handle-event
'''

REVERT_WORKFLOW_TEMPLATE = '''name: Revert on {integration}

on:
  workflow_dispatch:
    inputs:
      commit:
        description: Commit to revert (default: head of {integration})
        required: false
      reason:
        description: Why this commit is being reverted
        required: true

concurrency:
  group: promote-{stable}
  cancel-in-progress: false

permissions:
  contents: write
  issues: write
  pull-requests: write

jobs:
  revert:
    runs-on: ubuntu-latest
    # Required reviewers on this environment approve every revert
    environment: {environment}
    steps:
      - uses: actions/checkout@v4
        with:
          ref: {integration}
          fetch-depth: 0
      - uses: actions/setup-python@v5
        with:
          python-version: "3.12"
      - run: pip install integration-gate
      - run: |
          git config user.name "github-actions[bot]"
          git config user.email "41898282+github-actions[bot]@users.noreply.github.com"
      - name: Revert
        env:
          GITHUB_TOKEN: ${{{{ secrets.GITHUB_TOKEN }}}}
          REVERT_POLICY_PATH: ${{{{ vars.REVERT_POLICY_PATH }}}}
        run: integration-gate handle-event
'''


def init_repository(
    target_dir: Optional[Path] = None,
    integration_branch: str = "dmz",
    stable_branch: str = "main",
    environment: str = "revert-approval",
) -> bool:
    """
    Initialize the integration gate in a repository.

    Creates:
      - .github/workflows/dmz-gate.yml
      - .github/workflows/dmz-promote.yml
      - .github/workflows/dmz-revert.yml
      - .integration-gate.json

    Existing files are left untouched.
    """
    target = target_dir or Path.cwd()

    if not (target / ".git").exists():
        print(f"Error: {target} is not a git repository")
        return False

    names = {"integration": integration_branch, "stable": stable_branch, "environment": environment}
    files = {
        target / ".github" / "workflows" / f"{integration_branch}-gate.yml":
            GATE_WORKFLOW_TEMPLATE.format(**names),
        target / ".github" / "workflows" / f"{integration_branch}-promote.yml":
            PROMOTE_WORKFLOW_TEMPLATE.format(**names),
        target / ".github" / "workflows" / f"{integration_branch}-revert.yml":
            REVERT_WORKFLOW_TEMPLATE.format(**names),
        target / ".integration-gate.json":
            json.dumps(default_unit_config().to_dict(), indent=2) + "\n",
    }

    created_files = []
    for path, content in files.items():
        if path.exists():
            print(f"Already exists: {path}")
            continue
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        print(f"Created: {path}")
        created_files.append(path)

    if created_files:
        print("\nNext steps:")
        print(f"  1. Protect {stable_branch}: no direct pushes, no force pushes")
        print(f"  2. Protect {integration_branch}: require the 'integration-gate' status check")
        print(f"  3. Create the '{environment}' environment with required reviewers")
        print("  4. git add . && git commit -m 'Add integration gate' && git push")
    else:
        print("\nAlready configured. No changes needed.")

    return True
