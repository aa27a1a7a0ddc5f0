import pytest
from plugin_deployer.config import EnvironmentResolver
from plugin_deployer.models import DeploySettings, Environment, Package


class SleepRecorder:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)

    @property
    def total(self):
        return sum(self.calls)


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def settings():
    return DeploySettings()


@pytest.fixture
def package():
    return Package(version="10.7.4", local_path="target/components/packages/confluentinc-kafka-connect-jdbc-10.7.4")


@pytest.fixture
def resolver():
    return EnvironmentResolver(
        hosts={
            Environment.STAGE: "kafka-stage-1 kafka-stage-2",
            Environment.PROD: "kafka-prod-1",
        },
        services={
            Environment.STAGE: "kafka-connect",
            Environment.PROD: "kafka-connect",
        },
    )

