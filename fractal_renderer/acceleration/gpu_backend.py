"""
GPU acceleration backend using CuPy.

The kernel evaluates the escape-time recurrence and colors each pixel in
single precision (float32). Results match the CPU backends up to float32
rounding; at deep zoom levels or near color thresholds individual channels
may differ. The Barnsley fern is never computed on the GPU.

The render configuration is uploaded through :func:`serialize_config`, a
versioned fixed-order little-endian layout that the kernel reads by byte
offset.
"""

import numpy as np
from typing import Any, Dict
import logging
import time

from ..core.fractal_types import Mandelbrot, Julia, BarnsleyFern
from ..rendering.image_buffer import ImageBuffer

logger = logging.getLogger(__name__)

# Check for GPU libraries
GPU_BACKEND = None
try:
    import cupy as cp
    GPU_BACKEND = 'cupy'
    logger.info(f"CuPy available: {cp.__version__}")
except ImportError:
    logger.info("CuPy not installed - GPU acceleration disabled")


CONFIG_LAYOUT_VERSION = 1

CONFIG_LAYOUT_V1 = np.dtype([
    ('version', '<u4'),
    ('algo', '<u4'),
    ('width', '<f4'),
    ('height', '<f4'),
    ('iterations', '<u4'),
    ('limit', '<f4'),
    ('stable_limit', '<f4'),
    ('pos_re', '<f4'),
    ('pos_im', '<f4'),
    ('scale_re', '<f4'),
    ('scale_im', '<f4'),
    ('exposure', '<f4'),
    ('inside', '<f4'),
    ('smooth', '<f4'),
    ('primary', '<f4', (3,)),
    ('secondary', '<f4', (3,)),
    ('color_weight', '<f4'),
    ('julia_re', '<f4'),
    ('julia_im', '<f4'),
])

ALGO_CODES = {Mandelbrot: 0, BarnsleyFern: 1, Julia: 2}
MAX_GPU_ITERATIONS = np.iinfo(np.uint32).max


def serialize_config(config) -> bytes:
    """
    Encode a render configuration for upload to the GPU.

    Every field is written in a fixed order with a fixed width. The
    iteration cap is an unsigned integer, booleans become 1.0 / 0.0 and
    colors keep their 0..255 range as floats.

    Args:
        config: Render configuration

    Returns:
        ``CONFIG_LAYOUT_V1.itemsize`` bytes
    """
    if config.iterations > MAX_GPU_ITERATIONS:
        raise ValueError(f"GPU backend supports at most {MAX_GPU_ITERATIONS} iterations")

    record = np.zeros(1, dtype=CONFIG_LAYOUT_V1)
    seed = config.julia_seed
    record['version'] = CONFIG_LAYOUT_VERSION
    record['algo'] = ALGO_CODES[type(config.algorithm)]
    record['width'] = config.width
    record['height'] = config.height
    record['iterations'] = config.iterations
    record['limit'] = config.limit
    record['stable_limit'] = config.stable_limit
    record['pos_re'] = config.pos.re
    record['pos_im'] = config.pos.im
    record['scale_re'] = config.scale.re
    record['scale_im'] = config.scale.im
    record['exposure'] = config.exposure
    record['inside'] = 1.0 if config.inside else 0.0
    record['smooth'] = 1.0 if config.smooth else 0.0
    record['primary'] = config.primary_color.to_float_tuple()
    record['secondary'] = config.secondary_color.to_float_tuple()
    record['color_weight'] = config.color_weight
    record['julia_re'] = seed.re
    record['julia_im'] = seed.im
    return record.tobytes()


def deserialize_config(data: bytes) -> Dict[str, Any]:
    """Decode bytes written by :func:`serialize_config` into a field dictionary."""
    if len(data) != CONFIG_LAYOUT_V1.itemsize:
        raise ValueError(f"Expected {CONFIG_LAYOUT_V1.itemsize} bytes, got {len(data)}")
    record = np.frombuffer(data, dtype=CONFIG_LAYOUT_V1)[0]
    if int(record['version']) != CONFIG_LAYOUT_VERSION:
        raise ValueError(f"Unsupported config layout version {int(record['version'])}")
    return {name: record[name].tolist() for name in CONFIG_LAYOUT_V1.names}


def _offset(name: str) -> int:
    return CONFIG_LAYOUT_V1.fields[name][1]


def create_cupy_escape_time_kernel():
    """Create CuPy RawKernel for Mandelbrot / Julia rendering."""
    if GPU_BACKEND != 'cupy':
        return None

    kernel_code = '''
    extern "C" {

    __device__ float cfg_f32(const unsigned char* cfg, int offset) {
        unsigned int bits = (unsigned int)cfg[offset]
            | ((unsigned int)cfg[offset + 1] << 8)
            | ((unsigned int)cfg[offset + 2] << 16)
            | ((unsigned int)cfg[offset + 3] << 24);
        return __uint_as_float(bits);
    }

    __device__ unsigned int cfg_u32(const unsigned char* cfg, int offset) {
        return (unsigned int)cfg[offset]
            | ((unsigned int)cfg[offset + 1] << 8)
            | ((unsigned int)cfg[offset + 2] << 16)
            | ((unsigned int)cfg[offset + 3] << 24);
    }

    __device__ unsigned char to_channel(float v) {
        if (v != v || v <= 0.0f) return 0;
        if (v >= 255.0f) return 255;
        return (unsigned char)v;
    }

    __global__ void escape_time_kernel(const unsigned char* cfg, unsigned char* out,
                                       int width, int height) {
        int x = blockDim.x * blockIdx.x + threadIdx.x;
        int y = blockDim.y * blockIdx.y + threadIdx.y;

        if (x >= width || y >= height) return;

        unsigned int algo = cfg_u32(cfg, OFF_ALGO);
        float w = cfg_f32(cfg, OFF_WIDTH);
        float h = cfg_f32(cfg, OFF_HEIGHT);
        unsigned int iterations = cfg_u32(cfg, OFF_ITERATIONS);
        float limit = cfg_f32(cfg, OFF_LIMIT);
        float stable_limit = cfg_f32(cfg, OFF_STABLE_LIMIT);
        float exposure = cfg_f32(cfg, OFF_EXPOSURE);

        float re = (((float)x / h) - (w / h) / 2.0f) / cfg_f32(cfg, OFF_SCALE_RE) + cfg_f32(cfg, OFF_POS_RE);
        float im = (((float)y / h) - 0.5f) / cfg_f32(cfg, OFF_SCALE_IM) + cfg_f32(cfg, OFF_POS_IM);

        float cr = re;
        float ci = im;
        if (algo == 2u) {
            cr = cfg_f32(cfg, OFF_JULIA_RE);
            ci = cfg_f32(cfg, OFF_JULIA_IM);
        }

        float squared = limit * limit;
        float zr = re;
        float zi = im;
        float iters = (float)iterations;
        for (unsigned int i = 0; i < iterations; i++) {
            float nr = (zr * zr - zi * zi) + cr;
            float ni = 2.0f * zr * zi + ci;
            zr = nr;
            zi = ni;
            if (nr * nr + ni * ni > squared) {
                iters = (float)i;
                break;
            }
        }

        float dist = zr * zr + zi * zi;
        float r = 0.0f, g = 0.0f, b = 0.0f;
        if (dist > stable_limit) {
            if (cfg_f32(cfg, OFF_SMOOTH) > 0.5f) {
                float log_zn = log2f(sqrtf(dist)) / 2.0f;
                float nu = log2f(log_zn);
                iters += 1.0f - nu;
            }
            float mult = iters / (float)iterations * exposure;
            r = cfg_f32(cfg, OFF_PRIMARY) * mult;
            g = cfg_f32(cfg, OFF_PRIMARY + 4) * mult;
            b = cfg_f32(cfg, OFF_PRIMARY + 8) * mult;
        } else if (cfg_f32(cfg, OFF_INSIDE) > 0.5f) {
            r = cfg_f32(cfg, OFF_SECONDARY) * dist;
            g = cfg_f32(cfg, OFF_SECONDARY + 4) * dist;
            b = cfg_f32(cfg, OFF_SECONDARY + 8) * dist;
        }

        int index = (y * width + x) * 3;
        out[index] = to_channel(r);
        out[index + 1] = to_channel(g);
        out[index + 2] = to_channel(b);
    }

    }
    '''

    offsets = {
        'OFF_ALGO': 'algo', 'OFF_WIDTH': 'width', 'OFF_HEIGHT': 'height',
        'OFF_ITERATIONS': 'iterations', 'OFF_LIMIT': 'limit',
        'OFF_STABLE_LIMIT': 'stable_limit', 'OFF_POS_RE': 'pos_re', 'OFF_POS_IM': 'pos_im',
        'OFF_SCALE_RE': 'scale_re', 'OFF_SCALE_IM': 'scale_im', 'OFF_EXPOSURE': 'exposure',
        'OFF_INSIDE': 'inside', 'OFF_SMOOTH': 'smooth', 'OFF_PRIMARY': 'primary',
        'OFF_SECONDARY': 'secondary', 'OFF_JULIA_RE': 'julia_re', 'OFF_JULIA_IM': 'julia_im',
    }
    defines = ''.join(f'#define {macro} {_offset(field)}\n' for macro, field in offsets.items())

    return cp.RawKernel(defines + kernel_code, 'escape_time_kernel')


class GPUAccelerator:
    """CuPy-based GPU accelerator for escape-time fractals."""

    def __init__(self):
        """Initialize GPU accelerator."""
        self.backend = GPU_BACKEND
        self.kernel = None

        if self.available:
            self.device_id = cp.cuda.Device().id
            logger.info(f"Using GPU device: {self.device_id}")
            self.kernel = create_cupy_escape_time_kernel()
        else:
            logger.warning("No GPU backend available")

    @property
    def available(self):
        """Check if GPU acceleration is available."""
        return self.backend == 'cupy'

    def render_escape_time(self, config) -> ImageBuffer:
        """
        GPU-accelerated Mandelbrot / Julia render.

        Args:
            config: Render configuration with an escape-time algorithm

        Returns:
            Colored image buffer
        """
        if not self.available:
            raise RuntimeError("GPU acceleration not available")
        if not config.algorithm.is_escape_time():
            raise ValueError("The GPU backend only renders escape-time fractals")

        width, height = config.width, config.height
        cfg_gpu = cp.asarray(np.frombuffer(serialize_config(config), dtype=np.uint8))
        out_gpu = cp.zeros((height, width, 3), dtype=cp.uint8)

        block_size = (16, 16)
        grid_size = ((width + block_size[0] - 1) // block_size[0],
                     (height + block_size[1] - 1) // block_size[1])

        self.kernel(grid_size, block_size, (cfg_gpu, out_gpu, np.int32(width), np.int32(height)))
        cp.cuda.Stream.null.synchronize()

        return ImageBuffer.from_array(cp.asnumpy(out_gpu))

    def cleanup(self):
        """Clean up GPU memory."""
        if self.available:
            cp.get_default_memory_pool().free_all_blocks()

    def get_device_info(self):
        """Get GPU device information."""
        if not self.available:
            return {'backend': 'cpu'}
        mempool = cp.get_default_memory_pool()
        return {
            'backend': 'cupy',
            'device_id': self.device_id,
            'used_bytes': mempool.used_bytes(),
            'total_bytes': mempool.total_bytes(),
        }

    def benchmark_performance(self, config):
        """
        Time one GPU render of ``config``.

        Returns:
            Timing and performance information
        """
        if not self.available:
            return {"error": "GPU acceleration not available"}

        start_time = time.time()
        self.render_escape_time(config)
        gpu_time = time.time() - start_time

        return {
            "backend": self.backend,
            "gpu_time": gpu_time,
            "resolution": f"{config.width}x{config.height}",
            "max_iterations": config.iterations,
            "pixels_per_second": (config.width * config.height) / gpu_time,
            "device_info": self.get_device_info(),
        }


# Global GPU accelerator instance
_gpu_accelerator = None


def get_gpu_accelerator():
    """Get the global GPU accelerator instance."""
    global _gpu_accelerator
    if _gpu_accelerator is None:
        _gpu_accelerator = GPUAccelerator()
    return _gpu_accelerator


def is_gpu_available():
    """Check if GPU acceleration is available."""
    return GPU_BACKEND is not None
