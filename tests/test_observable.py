from liverecorder.observable import Observable


class Counter(Observable):
    def __init__(self):
        super().__init__()
        self._value = 0

    @property
    def value(self):
        return self._value

    def set(self, value) -> bool:
        return self._set_property('value', value)


def test_notifies_only_on_change() -> None:
    counter = Counter()
    seen = []
    counter.subscribe(seen.append)

    assert counter.set(1) is True
    assert counter.set(1) is False
    assert counter.set(2) is True

    assert seen == ["value", "value"]
    assert counter.value == 2


def test_handler_sees_new_value() -> None:
    counter = Counter()
    values = []
    counter.subscribe(lambda name: values.append(getattr(counter, name)))

    counter.set(5)

    assert values == [5]


def test_failing_handler_does_not_block_others() -> None:
    counter = Counter()
    seen = []

    def broken(name):
        raise RuntimeError("bad handler")

    counter.subscribe(broken)
    counter.subscribe(seen.append)
    counter.set(3)

    assert seen == ["value"]


def test_unsubscribe() -> None:
    counter = Counter()
    seen = []
    counter.subscribe(seen.append)
    counter.subscribe(seen.append)
    counter.unsubscribe(seen.append)
    counter.unsubscribe(seen.append)

    counter.set(1)

    assert seen == []
