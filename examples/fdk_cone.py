import matplotlib.pyplot as plt

from fdkct import (
    RampFilterConfig,
    VolumeGeometry,
    circular_geometry,
    image_quality,
    reconstruct,
)
from fdkct.utils import cuda_available

from ellipsoids import SHEPP_LOGAN, draw_ellipsoids, ellipsoids, project_ellipsoids


def main():
    Nx, Ny, Nz = 128, 128, 128
    voxel_size = 2.0

    num_views = 180
    det_u, det_v = 128, 128
    du, dv = 4.0, 4.0
    source_distance = 1200.0
    isocenter_distance = 600.0

    geometry = circular_geometry(num_views, sid=isocenter_distance, sdd=source_distance)
    volume = VolumeGeometry.centered((Nx, Ny, Nz), (voxel_size,) * 3)

    shapes = ellipsoids(SHEPP_LOGAN, scale=100.0)
    phantom = draw_ellipsoids(volume, shapes)
    projections = project_ellipsoids(geometry, det_u, det_v, (du, dv), shapes)

    backend = 'cuda' if cuda_available() else 'cpu'
    reconstruction = reconstruct(projections, geometry, volume,
                                 filter_config=RampFilterConfig(window="hann"),
                                 backend=backend, mask_field_of_view=True)

    quality = image_quality(reconstruction, phantom)
    print("FDK cone-beam example:")
    print("Backend:", backend)
    print("Error per pixel:", quality.error_per_pixel)
    print("PSNR [dB]:", quality.psnr)
    print("Reconstruction shape:", reconstruction.shape)

    reconstruction_np = reconstruction.data
    mid_slice = Nz // 2

    plt.figure(figsize=(12,4))
    plt.subplot(1,3,1)
    plt.imshow(phantom[mid_slice], cmap='gray')
    plt.title("Phantom mid-slice")
    plt.axis('off')
    plt.subplot(1,3,2)
    plt.imshow(projections.data[num_views//2], cmap='gray')
    plt.title("Projection mid-view")
    plt.axis('off')
    plt.subplot(1,3,3)
    plt.imshow(reconstruction_np[mid_slice], cmap='gray')
    plt.title("Recon mid-slice")
    plt.axis('off')
    plt.tight_layout()
    plt.show()

    print("Phantom data range:", phantom.min(), phantom.max())
    print("Reco data range:", reconstruction_np.min(), reconstruction_np.max())

if __name__ == "__main__":
    main()
