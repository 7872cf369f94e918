#!/usr/bin/env python3
"""Generate JWT tokens for manual API testing."""
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from compliance_lms.core.auth import create_access_token

TEST_SUBJECTS = (
    ("admin-test", "admin"),
    ("org-admin-test", "org_admin"),
    ("learner-test", "learner"),
)

for subject, role in TEST_SUBJECTS:
    token = create_access_token(subject, roles=[role])
    print(f"{role} token:\n{token}\n")
