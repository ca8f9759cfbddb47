"""Analytic ellipsoid phantoms for the examples and the test suite.

Ellipsoids are given as rows ``(x, y, z, a, b, c, phi, density)``: centre,
semi-axes, rotation about z in radians and density. Positions and axes are
unit-free and scaled to mm by ``ellipsoids``.
"""

import numpy as np

from fdkct import ProjectionStack

# Modified Shepp-Logan; the long axis (b) lies along the rotation axis y.
SHEPP_LOGAN = np.array([
    [0, 0, 0, 0.69, 0.92, 0.81, 0, 1],
    [0, -0.0184, 0, 0.6624, 0.874, 0.78, 0, -0.8],
    [0.22, 0, 0, 0.11, 0.31, 0.22, -np.pi/10.0, -0.2],
    [-0.22, 0, 0, 0.16, 0.41, 0.28, np.pi/10.0, -0.2],
    [0, 0.35, -0.15, 0.21, 0.25, 0.41, 0, 0.1],
    [0, 0.1, 0.25, 0.046, 0.046, 0.05, 0, 0.1],
    [0, -0.1, 0.25, 0.046, 0.046, 0.05, 0, 0.1],
    [-0.08, -0.605, 0, 0.046, 0.023, 0.05, 0, 0.1],
    [0, -0.605, 0, 0.023, 0.023, 0.02, 0, 0.1],
    [0.06, -0.605, 0, 0.023, 0.046, 0.02, 0, 0.1],
], dtype=np.float64)


def ellipsoids(table, scale):
    """(centre, semi_axes, rotation, density) tuples in mm."""
    out = []
    for row in table:
        c, s = np.cos(row[6]), np.sin(row[6])
        # world -> ellipsoid frame
        rotation = np.array([[c, s, 0.0], [-s, c, 0.0], [0.0, 0.0, 1.0]])
        out.append((row[0:3] * scale, row[3:6] * scale, rotation, row[7]))
    return out


def sphere(radius, density=1.0):
    return [(np.zeros(3), np.full(3, float(radius)), np.eye(3), density)]


def project_ellipsoids(geometry, n_u, n_v, spacing, shapes):
    """Exact line integrals through the ellipsoids for every detector pixel."""
    stack = ProjectionStack(np.zeros((len(geometry), n_v, n_u)), spacing=spacing)
    data = np.zeros(stack.data.shape)
    uu, vv = np.meshgrid(stack.u_coordinates, stack.v_coordinates)
    for view in range(len(geometry)):
        source = geometry.source_position(view)
        det_origin, u_vec, v_vec = geometry.detector_frame(view)
        direction = det_origin + uu[..., None] * u_vec + vv[..., None] * v_vec - source
        direction /= np.linalg.norm(direction, axis=-1, keepdims=True)
        for centre, axes, rotation, density in shapes:
            # Chord length of the unit-speed ray through the ellipsoid
            p0 = ((source - centre) @ rotation.T) / axes
            p1 = (direction @ rotation.T) / axes
            a = np.sum(p1 * p1, axis=-1)
            b = 2.0 * np.sum(p0 * p1, axis=-1)
            c = np.sum(p0 * p0) - 1.0
            disc = b * b - 4.0 * a * c
            data[view] += density * np.sqrt(np.clip(disc, 0.0, None)) / a
    return stack.with_data(data)


def draw_ellipsoids(volume, shapes):
    """Reference volume sampled at voxel centres, shape (n_z, n_y, n_x)."""
    axes_coords = [o + np.arange(n) * s for o, s, n in zip(volume.origin, volume.spacing, volume.size)]
    zz, yy, xx = np.meshgrid(axes_coords[2], axes_coords[1], axes_coords[0], indexing="ij")
    points = np.stack([xx, yy, zz], axis=-1)
    out = np.zeros(volume.shape)
    for centre, axes, rotation, density in shapes:
        local = ((points - centre) @ rotation.T) / axes
        out += density * (np.sum(local * local, axis=-1) <= 1.0)
    return out
