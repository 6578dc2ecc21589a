"""Tests for the logger, sinks, builders and structlog integration."""

import io
import json
import logging
from types import SimpleNamespace

import pytest
import structlog
from structlog.testing import capture_logs

from semlog import (
    Destructure,
    DestructuringProcessor,
    LogLevel,
    MessageBuilder,
    SemanticLogger,
    Sink,
    StdlibSink,
    StructlogSink,
    TemplateBindingError,
    TemplateCache,
    TemplateParseError,
    configure_logging,
    from_interpolation,
    from_pairs,
    get_logger,
)


@pytest.fixture(autouse=True)
def reset_structlog():
    """Start and end every test with structlog's default configuration."""
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


class RecordingLogger:
    """Stands in for a structlog logger and keeps every call."""

    def __init__(self):
        self.calls = []

    def log(self, level, event, **kw):
        self.calls.append((level, event, kw))


class RecordingSink(Sink):
    """Keeps what it receives, with the context variables at that time."""

    def __init__(self):
        self.records = []

    def log(self, level, template_text, values, error=None):
        self.records.append({
            'level': level,
            'template': template_text,
            'values': tuple(values),
            'error': error,
            'context': structlog.contextvars.get_contextvars(),
        })


@pytest.fixture
def cache():
    return TemplateCache()


def test_structlog_sink_properties(cache):
    """Test that placeholders become event keys."""
    fake = RecordingLogger()
    sink = StructlogSink(fake, cache=cache)
    sink.log(LogLevel.INFORMATION, '{user} bought {count} items', ['ann', 3])
    level, event, kw = fake.calls[0]
    assert level == logging.INFO
    assert event == 'ann bought 3 items'
    assert kw == {'template': '{user} bought {count} items', 'user': 'ann', 'count': 3}


def test_structlog_sink_markers(cache):
    """Test destructure and stringify markers."""
    fake = RecordingLogger()
    sink = StructlogSink(fake, cache=cache)
    order = {'id': 7, 'password': 'x'}
    sink.log(LogLevel.INFORMATION, '{@order} for {$customer}', [order, 42])
    _, _, kw = fake.calls[0]
    assert kw['order'] == {'id': 7}
    assert kw['customer'] == '42'


def test_structlog_sink_stringifies_objects(cache):
    """Test that a non-scalar value without a marker is logged as text."""
    fake = RecordingLogger()
    StructlogSink(fake, cache=cache).log(LogLevel.INFORMATION, 'got {items}', [[1, 2]])
    assert fake.calls[0][2]['items'] == '[1, 2]'


def test_structlog_sink_reserved_keys(cache):
    """Test that placeholder names clashing with event keys get a suffix."""
    fake = RecordingLogger()
    StructlogSink(fake, cache=cache).log(LogLevel.WARNING, '{event} at {level}', ['e', 'l'])
    _, event, kw = fake.calls[0]
    assert event == 'e at l'
    assert kw['event_'] == 'e'
    assert kw['level_'] == 'l'


def test_structlog_sink_error_and_trace(cache):
    """Test that errors travel as exc_info and TRACE maps to DEBUG."""
    fake = RecordingLogger()
    error = RuntimeError('boom')
    StructlogSink(fake, cache=cache).log(LogLevel.TRACE, 'step {n}', [1], error)
    level, _, kw = fake.calls[0]
    assert level == logging.DEBUG
    assert kw['exc_info'] is error


def test_structlog_sink_with_capture_logs(cache):
    """Test the default structlog logger path."""
    log = SemanticLogger(StructlogSink(cache=cache), cache=cache, capture_provenance=False)
    with capture_logs() as logs:
        log.warning('disk {mount} at {pct:.0f}%', '/var', 93.4)
    assert len(logs) == 1
    entry = logs[0]
    assert entry['event'] == 'disk /var at 93%'
    assert entry['log_level'] == 'warning'
    assert entry['mount'] == '/var'
    assert entry['pct'] == 93.4
    assert entry['template'] == 'disk {mount} at {pct:.0f}%'


def test_stdlib_sink(caplog, cache):
    """Test that records carry the template and the properties."""
    logger = logging.getLogger('semlog.tests.stdlib')
    log = SemanticLogger(StdlibSink(logger, cache=cache), cache=cache, capture_provenance=False)
    with caplog.at_level(logging.INFO, logger='semlog.tests.stdlib'):
        log.information('{user} signed in from {host}', 'ann', 'web-1')
        log.debug('hidden {x}', 1)
    assert len(caplog.records) == 1
    record = caplog.records[0]
    assert record.getMessage() == 'ann signed in from web-1'
    assert record.template == '{user} signed in from {host}'
    assert record.properties == {'user': 'ann', 'host': 'web-1'}
    assert record.levelno == logging.INFO


def test_stdlib_sink_error(caplog, cache):
    """Test that the error is attached to the record."""
    logger = logging.getLogger('semlog.tests.error')
    log = SemanticLogger(StdlibSink(logger, cache=cache), cache=cache, capture_provenance=False)
    try:
        raise ValueError('bad input')
    except ValueError as e:
        with caplog.at_level(logging.ERROR, logger='semlog.tests.error'):
            log.error('failed for {item}', 'x', error=e)
    record = caplog.records[0]
    assert record.exc_info[0] is ValueError


def test_logger_returns_bound_message(cache):
    """Test that the returned message renders like the logged one."""
    sink = RecordingSink()
    log = SemanticLogger(sink, cache=cache, capture_provenance=False)
    message = log.info('{a} + {b}', 1, 2)
    assert str(message) == '1 + 2'
    assert message.to_dictionary() == {'a': '1', 'b': '2'}
    assert sink.records[0]['template'] == '{a} + {b}'
    assert sink.records[0]['values'] == (1, 2)
    assert sink.records[0]['level'] == LogLevel.INFORMATION


def test_log_message_reuses_bound_message(cache):
    """Test logging a message that was bound earlier."""
    sink = RecordingSink()
    log = SemanticLogger(sink, cache=cache, capture_provenance=False)
    message = log.debug('retry {n}', 2)
    error = TimeoutError('slow')
    assert log.log_message(LogLevel.ERROR, message, error) is message
    assert sink.records[1]['template'] == 'retry {n}'
    assert sink.records[1]['values'] == (2,)
    assert sink.records[1]['error'] is error


@pytest.mark.parametrize(
    'method, level',
    [
        ('trace', LogLevel.TRACE),
        ('debug', LogLevel.DEBUG),
        ('information', LogLevel.INFORMATION),
        ('warning', LogLevel.WARNING),
        ('error', LogLevel.ERROR),
        ('critical', LogLevel.CRITICAL),
    ],
)
def test_level_methods(cache, method, level):
    """Test that each level method forwards its level."""
    sink = RecordingSink()
    log = SemanticLogger(sink, cache=cache, capture_provenance=False)
    getattr(log, method)('x')
    assert sink.records[0]['level'] == level


def test_malformed_skeleton_raises(cache):
    """Test that a malformed skeleton reaches the caller."""
    log = SemanticLogger(RecordingSink(), cache=cache, capture_provenance=False)
    with pytest.raises(TemplateParseError):
        log.info('oops {')


def test_missing_values_raise_on_render(cache):
    """Test that a short value list fails when the message is rendered."""
    log = SemanticLogger(RecordingSink(), cache=cache, capture_provenance=False)
    message = log.info('{a} {b}', 1)
    with pytest.raises(TemplateBindingError):
        str(message)


def test_provenance_names_positional_placeholders(cache):
    """Test that the caller's source line names {0}."""
    sink = RecordingSink()
    log = SemanticLogger(sink, cache=cache)
    skeleton = 'value={0}'
    message = log.information(skeleton, 3)  # {x.Y}
    assert message.line_no > 0
    assert message.file_path.endswith('test_log.py')
    assert message.to_dictionary() == {'x.Y': '3'}
    assert str(message) == 'value=3'


def test_provenance_from_log_method(cache):
    """Test provenance when calling log() directly."""
    log = SemanticLogger(RecordingSink(), cache=cache)
    skeleton = '{0} was seen'
    message = log.log(LogLevel.WARNING, skeleton, 'ann')  # {visitor.Name}
    assert message.to_dictionary() == {'visitor.Name': 'ann'}


def test_sink_without_cache_shares_logger_cache(cache):
    """Test that recovered names reach the event keys of a cacheless sink."""
    fake = RecordingLogger()
    sink = StructlogSink(fake)
    log = SemanticLogger(sink, cache=cache)
    assert sink.cache is cache
    skeleton = 'order {0} placed'
    log.information(skeleton, 42)  # {order.Id}
    _, event, kw = fake.calls[0]
    assert event == 'order 42 placed'
    assert kw['order.Id'] == 42
    assert '0' not in kw


def test_sink_cache_is_kept(cache):
    """Test that a sink given its own cache keeps it."""
    own = TemplateCache()
    sink = StructlogSink(RecordingLogger(), cache=own)
    SemanticLogger(sink, cache=cache)
    assert sink.cache is own


def test_provenance_can_be_disabled(cache):
    """Test that no file path is captured when provenance is off."""
    log = SemanticLogger(RecordingSink(), cache=cache, capture_provenance=False)
    skeleton = 'value={0}'
    message = log.information(skeleton, 3)  # {x.Y}
    assert message.file_path == ''
    assert message.to_dictionary() == {'0': '3'}


def test_event_with_pairs_and_context(cache):
    """Test that context is bound while the sink runs, and only then."""
    sink = RecordingSink()
    log = SemanticLogger(sink, cache=cache)
    message = from_pairs('order ', ('order.id', 42), ' shipped')
    bound = log.event(message, LogLevel.WARNING, context={'request_id': 'r-9'})
    record = sink.records[0]
    assert record['template'] == 'order {order.id} shipped'
    assert record['values'] == (42,)
    assert record['level'] == LogLevel.WARNING
    assert record['context'] == {'request_id': 'r-9'}
    assert structlog.contextvars.get_contextvars() == {}
    assert str(bound) == 'order 42 shipped'
    assert bound.file_path == ''


def test_event_with_interpolation(cache):
    """Test logging a template-string-like object."""
    sink = RecordingSink()
    log = SemanticLogger(sink, cache=cache)
    user = SimpleNamespace(name='ann')
    template = SimpleNamespace(
        strings=('hello ', ''),
        interpolations=(SimpleNamespace(value=user.name, expression='user.name', format_spec=''),),
    )
    bound = log.event(template, error=None)
    assert sink.records[0]['template'] == 'hello {user.name}'
    assert sink.records[0]['context'] == {}
    assert bound.to_dictionary() == {'user.name': 'ann'}


def test_event_honours_level(cache):
    """Test that the level argument of event is used."""
    sink = RecordingSink()
    SemanticLogger(sink, cache=cache).event(('plain', ()), LogLevel.ERROR)
    assert sink.records[0]['level'] == LogLevel.ERROR


def test_builder_escapes_and_names():
    """Test literal escaping and name cleanup."""
    builder = MessageBuilder()
    builder.append_literal('{literal} ')
    builder.append_formatted(1, 'items[0]')
    builder.append_literal(' ')
    builder.append_formatted(2, '"quoted"')
    builder.append_literal(' ')
    builder.append_formatted(3, '!!')
    skeleton, values = builder.result()
    assert skeleton == '{{literal}} {items_0} {quoted} {arg2}'
    assert values == (1, 2, 3)


def test_builder_prefix():
    """Test that a prefix is prepended to every name."""
    skeleton, _ = from_pairs(('user', 'ann'), ' ', ('count', 2), prefix='ctx')
    assert skeleton == '{ctx_user} {ctx_count}'


def test_builder_freezes_collections():
    """Test that lists are copied so later changes are not logged."""
    items = ['a']
    skeleton, values = from_pairs(('items', items))
    items.append('b')
    assert values == (('a',),)


def test_builder_destructure():
    """Test that a Destructure wrapper produces an @ placeholder."""
    order = {'id': 1}
    skeleton, values = from_pairs('new ', ('Destructure(order)', Destructure(order)))
    assert skeleton == 'new {@order}'
    assert values == (order,)


def test_from_interpolation_with_format():
    """Test that interpolation format specs are kept."""
    template = SimpleNamespace(
        strings=('total ', ' due'),
        interpolations=(SimpleNamespace(value=2.5, expression='invoice.total', format_spec='.2f'),),
    )
    skeleton, values = from_interpolation(template)
    assert skeleton == 'total {invoice.total:.2f} due'
    assert values == (2.5,)


def test_destructuring_processor():
    """Test that @ keys and Destructure values are expanded."""
    processor = DestructuringProcessor()
    event = processor(None, 'info', {
        'event': 'e',
        '@login': {'user': 'ann', 'password': 'x'},
        'items': Destructure(list(range(20))),
        'plain': 'kept',
    })
    assert event == {
        'event': 'e',
        'items': list(range(10)),
        'plain': 'kept',
        'login': {'user': 'ann'},
    }


def test_configure_logging_json():
    """Test the JSON configuration end to end."""
    stream = io.StringIO()
    configure_logging(level='DEBUG', json_logs=True, stream=stream)
    get_logger('tests').info('login', **{'@user': {'name': 'ann', 'password': 'x'}})
    line = json.loads(stream.getvalue().strip())
    assert line['event'] == 'login'
    assert line['level'] == 'info'
    assert line['user'] == {'name': 'ann'}
    assert 'timestamp' in line


def test_configure_logging_filters_level():
    """Test that the configured level filters lower events."""
    stream = io.StringIO()
    configure_logging(level='WARNING', json_logs=True, stream=stream)
    logger = get_logger()
    logger.info('quiet')
    logger.warning('loud')
    lines = stream.getvalue().strip().splitlines()
    assert [json.loads(line)['event'] for line in lines] == ['loud']


def test_semantic_logger_through_configured_structlog(cache):
    """Test the full path from SemanticLogger to rendered JSON."""
    stream = io.StringIO()
    configure_logging(level='INFO', json_logs=True, stream=stream)
    log = SemanticLogger(cache=cache, capture_provenance=False)
    with structlog.contextvars.bound_contextvars(request_id='r-1'):
        log.info('{@user} logged in', {'name': 'ann', 'password': 'x'})
    line = json.loads(stream.getvalue().strip())
    assert line['user'] == {'name': 'ann'}
    assert line['request_id'] == 'r-1'
    assert line['template'] == '{@user} logged in'


def test_get_logger_names():
    """Test that loggers are namespaced under semlog."""
    # Lazy proxies keep the positional arguments they were created with.
    assert get_logger()._logger_factory_args == ('semlog',)
    assert get_logger('orders')._logger_factory_args == ('semlog.orders',)
    assert get_logger('semlog.db')._logger_factory_args == ('semlog.db',)
