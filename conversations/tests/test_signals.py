from django.dispatch import Signal
from django.test import SimpleTestCase

from conversations import signals


class LifecycleSignalsTest(SimpleTestCase):
    def test_every_signal_has_a_receiver(self):
        declared = {name: value for name, value in vars(signals).items() if isinstance(value, Signal)}

        self.assertNotIn("conversation_created", declared)
        for name, signal in declared.items():
            with self.subTest(signal=name):
                self.assertTrue(signal.has_listeners())
