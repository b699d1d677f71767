"""
Pytest configuration for the CAPM Studio test suite.

Provides:
- an instant (zero-pacing) configuration
- a scripted generation backend that replays canned assistant payloads
- a workspace session wired to both
"""
import pytest

from capm_studio.config import StudioConfig
from capm_studio.session import WorkspaceSession


class ScriptedGenerator:
    """Fake generation backend: returns queued payloads and records every request."""

    def __init__(self, *payloads):
        self.payloads = list(payloads)
        self.requests = []

    def queue(self, *payloads):
        self.payloads.extend(payloads)

    async def __call__(self, request):
        self.requests.append(request)
        if not self.payloads:
            raise RuntimeError("ScriptedGenerator ran out of payloads")
        payload = self.payloads.pop(0)
        if isinstance(payload, Exception):
            raise payload
        return payload


BOOKSHOP_RESPONSE = """I'll create a bookshop for you!

```cds /db/schema.cds
namespace my.bookshop;

entity Books {
  key ID : Integer;
  title  : String;
}
```



```cds /srv/cat-service.cds
using my.bookshop as my from '../db/schema';
service CatalogService {
  entity Books as projection on my.Books;
}
```

Run `npm start` to try it."""


@pytest.fixture
def instant_config():
    return StudioConfig.instant()


@pytest.fixture
def generator():
    return ScriptedGenerator()


@pytest.fixture
def session(generator, instant_config):
    return WorkspaceSession(generator=generator, config=instant_config)


@pytest.fixture
def project_session(session):
    session.create_project("Bookshop")
    return session


@pytest.fixture
def recorded_events(session):
    events = []
    session.subscribe(events.append)
    return events


@pytest.fixture
def bookshop_response():
    return BOOKSHOP_RESPONSE
