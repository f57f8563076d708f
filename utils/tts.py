"""
FaceScan-Auth - Text-to-Speech System
Spoken capture feedback and outcome announcements using Piper TTS
"""

import logging
import threading
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)

PIPER_SAMPLE_RATE = 22050


class TextToSpeech:
    """
    Text-to-speech engine using Piper for natural voice synthesis,
    with pyttsx3 as the fallback engine

    Speaking is best effort: every failure is logged and swallowed.
    Non-blocking phrases run on a daemon thread; when several are queued
    only the newest one is spoken.
    """

    def __init__(self, config: dict):
        self.config = config
        tts_config = config.get('tts', {})
        self.enabled = tts_config.get('enabled', True)
        self.rate = tts_config.get('rate', 150)
        self.volume = tts_config.get('volume', 0.9)

        # Piper TTS settings
        self.model_path = tts_config.get('model_path', 'en_US-lessac-medium.onnx')
        self.voice = None

        # Fallback TTS engine (pyttsx3)
        self._fallback_engine = None
        self._engine_lock = threading.Lock()

        self._generation = 0
        self._generation_lock = threading.Lock()
        self._shutdown = False

        if self.enabled:
            self._initialize_voice()

    def _initialize_voice(self):
        """Initialize Piper voice"""
        try:
            from piper import PiperVoice
            self.voice = PiperVoice.load(self.model_path)
            logger.info(f"Piper TTS initialized with model: {self.model_path}")
        except ImportError:
            logger.warning("Piper TTS not available, using fallback")
            self.voice = None
        except Exception as e:
            logger.error(f"Failed to initialize Piper TTS: {e}")
            logger.info("Falling back to system TTS...")
            self.voice = None

    def speak(self, text: str, blocking: bool = False):
        """
        Speak text

        Args:
            text: Text to speak
            blocking: If True, wait for speech to complete
        """
        if not self.enabled or self._shutdown or not text:
            return

        if blocking:
            self._say(text)
            return

        with self._generation_lock:
            self._generation += 1
            generation = self._generation

        thread = threading.Thread(target=self._say_if_current, args=(text, generation), daemon=True)
        thread.start()

    def speak_async(self, text: str):
        """Speak text without blocking the caller"""
        self.speak(text, blocking=False)

    def speak_sync(self, text: str):
        """Speak text and wait until it has been spoken"""
        self.speak(text, blocking=True)

    def _say_if_current(self, text: str, generation: int):
        with self._engine_lock:
            if generation != self._generation:
                logger.debug(f"Skipping superseded phrase: {text}")
                return
            self._say_locked(text)

    def _say(self, text: str):
        with self._engine_lock:
            self._say_locked(text)

    def _say_locked(self, text: str):
        if self.voice:
            try:
                self._piper_say(text)
                logger.info(f"Spoke: {text}")
                return
            except Exception as e:
                logger.error(f"Piper TTS failed: {e}")

        self._fallback_tts(text)

    def _piper_say(self, text: str):
        import sounddevice as sd

        audio_data = self.voice.synthesize(text)
        audio_array = np.frombuffer(audio_data, dtype=np.int16).astype(np.float32) / 32768.0
        sd.play(audio_array, samplerate=PIPER_SAMPLE_RATE)
        sd.wait()

    def _fallback_tts(self, text: str):
        """Fallback TTS using pyttsx3; caller holds the engine lock"""
        try:
            import pyttsx3

            if self._fallback_engine is None:
                self._fallback_engine = pyttsx3.init()
                self._fallback_engine.setProperty('rate', self.rate)
                self._fallback_engine.setProperty('volume', self.volume)

            self._fallback_engine.say(text)
            self._fallback_engine.runAndWait()
            logger.info(f"Fallback TTS spoke: {text}")

        except Exception as e:
            logger.error(f"Fallback TTS failed: {e}")

    def shutdown(self):
        """Cleanup TTS engines"""
        self._shutdown = True

        with self._engine_lock:
            if self._fallback_engine:
                try:
                    self._fallback_engine.stop()
                except Exception as e:
                    logger.debug(f"Fallback TTS stop failed: {e}")
                self._fallback_engine = None
            self.voice = None

        logger.info("TTS shut down")
