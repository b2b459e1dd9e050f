from restaurant_checkout.navigation import ConfirmationNavigator, NavigationState, confirmation_url


class Recorder:
    def __init__(self, failures=0):
        self.failures = failures
        self.urls = []
        self.delays = []

    async def navigate(self, url):
        self.urls.append(url)
        if len(self.urls) <= self.failures:
            raise RuntimeError("router not ready")

    async def sleep(self, delay):
        self.delays.append(delay)


def test_confirmation_url():
    assert confirmation_url("abc") == "/order-confirmation/abc"


async def test_first_attempt_succeeds():
    recorder = Recorder()
    navigator = ConfirmationNavigator(recorder.navigate, sleep=recorder.sleep)

    result = await navigator.go_to_confirmation("abc")

    assert result.succeeded
    assert result.attempts == 1
    assert recorder.urls == ["/order-confirmation/abc"]
    assert recorder.delays == []


async def test_retries_with_doubling_backoff():
    recorder = Recorder(failures=2)
    navigator = ConfirmationNavigator(recorder.navigate, max_attempts=3, backoff=0.5, sleep=recorder.sleep)

    result = await navigator.go_to_confirmation("abc")

    assert result.state == NavigationState.NAVIGATED
    assert result.attempts == 3
    assert recorder.delays == [0.5, 1.0]


async def test_gives_up_after_max_attempts():
    recorder = Recorder(failures=10)
    navigator = ConfirmationNavigator(recorder.navigate, max_attempts=3, sleep=recorder.sleep)

    result = await navigator.go_to_confirmation("abc")

    assert result.state == NavigationState.FAILED
    assert not result.succeeded
    assert result.url == "/order-confirmation/abc"
    assert result.error == "router not ready"
    assert len(recorder.urls) == 3
    assert len(recorder.delays) == 2
